import time
from typing import Literal, Optional

from pydantic import BaseModel, Field

NEW_CHAT_TITLE = "New Chat"
TITLE_LENGTH = 30


def now_ms() -> int:
    return int(time.time() * 1000)


def make_title(text: str, length: int = TITLE_LENGTH) -> str:
    """First ``length`` characters, with an ellipsis only when truncated."""
    return text[:length] + ("..." if len(text) > length else "")


class MessageStats(BaseModel):
    duration: str  # seconds, two decimals
    tokens: int
    speed: str  # tokens per second, one decimal
    model: str

    @classmethod
    def from_counters(
        cls, total_duration: int, eval_count: int, eval_duration: int, model: str
    ) -> "MessageStats":
        """Build stats from the nanosecond counters of a final stream record."""
        eval_seconds = eval_duration / 1e9
        speed = f"{eval_count / eval_seconds:.1f}" if eval_seconds > 0 else "0"
        return cls(
            duration=f"{total_duration / 1e9:.2f}",
            tokens=eval_count,
            speed=speed,
            model=model,
        )


class Message(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    id: Optional[int] = None
    stats: Optional[MessageStats] = None
    is_loading: bool = False
    is_error: bool = False
    status: str = ""  # "" while streaming | complete | stopped | error


class Chat(BaseModel):
    id: int = Field(default_factory=now_ms)
    title: str = NEW_CHAT_TITLE
    messages: list[Message] = []
    updated_at: int = 0
    model: str = ""


class ChatSummary(BaseModel):
    """Lightweight metadata for the history list (stored in _index.json)."""

    id: int
    title: str
    model: str = ""
    message_count: int = 0
    updated_at: int = 0
