from dataclasses import dataclass, field
from typing import Literal

from ..ollama.models import ModelDescriptor
from .models import Message, now_ms


@dataclass
class ChatContext:
    """Everything the chat UI knows about the current session."""

    chat_id: int = field(default_factory=now_ms)
    model: str = ""
    messages: list[Message] = field(default_factory=list)
    history: dict[int, str] = field(default_factory=dict)  # chat id -> title
    models: list[ModelDescriptor] = field(default_factory=list)
    is_generating: bool = False
    online: bool = False
    model_count: int = 0


@dataclass
class StreamEvent:
    """One update on the controller's output channel."""

    kind: Literal["token", "stats", "done"]
    message_id: int
    content: str = ""
    status: str = ""
