from .context import ChatContext, StreamEvent
from .controller import ChatController
from .models import Chat, ChatSummary, Message, MessageStats, make_title
from .storage import ChatStore

__all__ = [
    "Chat",
    "ChatContext",
    "ChatController",
    "ChatStore",
    "ChatSummary",
    "Message",
    "MessageStats",
    "StreamEvent",
    "make_title",
]
