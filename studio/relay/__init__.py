from .sessions import RelaySession, SessionStore
from .stream import describe_error, relay_chat, until_cancelled

__all__ = [
    "RelaySession",
    "SessionStore",
    "describe_error",
    "relay_chat",
    "until_cancelled",
]
