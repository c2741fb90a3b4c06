import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class RelaySession:
    """Server-held transcript of one chat, sent upstream on every turn."""

    model: str
    messages: list[dict] = field(default_factory=list)
    last_activity: float = field(default_factory=time.time)

    def touch(self) -> None:
        self.last_activity = time.time()


class SessionStore:
    """In-memory sessions keyed by chat id, plus per-chat cancel events."""

    def __init__(self) -> None:
        self._sessions: dict[str, RelaySession] = {}
        self._cancel_events: dict[str, asyncio.Event] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, chat_id: str) -> bool:
        return chat_id in self._sessions

    def get(self, chat_id: str) -> Optional[RelaySession]:
        return self._sessions.get(chat_id)

    def add_user_message(self, chat_id: str, content: str, model: str) -> RelaySession:
        session = self._sessions.get(chat_id)
        if session is None:
            session = RelaySession(model=model)
            self._sessions[chat_id] = session
        session.messages.append({"role": "user", "content": content})
        session.model = model
        session.touch()
        return session

    def add_assistant_message(self, chat_id: str, content: str) -> None:
        session = self._sessions.get(chat_id)
        if session is None:
            return
        session.messages.append({"role": "assistant", "content": content})
        session.touch()

    def delete(self, chat_id: str) -> bool:
        self.cancel(chat_id)
        return self._sessions.pop(chat_id, None) is not None

    def prune(self, max_age: float, now: Optional[float] = None) -> list[str]:
        """Drop sessions idle for longer than ``max_age`` seconds."""
        cutoff = (now if now is not None else time.time()) - max_age
        stale = [cid for cid, s in self._sessions.items() if s.last_activity < cutoff]
        for chat_id in stale:
            del self._sessions[chat_id]
            logger.info("Cleaned up inactive session: %s", chat_id)
        return stale

    # ---- Cancellation ----

    def begin_turn(self, chat_id: str) -> asyncio.Event:
        event = asyncio.Event()
        self._cancel_events[chat_id] = event
        return event

    def end_turn(self, chat_id: str, event: asyncio.Event) -> None:
        if self._cancel_events.get(chat_id) is event:
            del self._cancel_events[chat_id]

    def cancel(self, chat_id: str) -> bool:
        event = self._cancel_events.get(chat_id)
        if event is None:
            return False
        event.set()
        return True
