from typing import Optional

from pydantic import BaseModel, Field


class ModelDescriptor(BaseModel):
    """An installed model as reported by the listing endpoint."""

    name: str
    size: Optional[int] = None
    modified: Optional[str] = None


class ChunkMessage(BaseModel):
    role: str = "assistant"
    content: str = ""


class ChatChunk(BaseModel):
    """One line of the inference server's line-delimited JSON stream.

    Intermediate records carry a content fragment; the final record has
    ``done`` set and the timing counters (nanoseconds).
    """

    model: str = ""
    message: Optional[ChunkMessage] = None
    done: bool = False
    error: Optional[str] = None
    total_duration: int = 0
    eval_count: int = 0
    eval_duration: int = 0

    @property
    def content(self) -> str:
        return self.message.content if self.message else ""


class ChatOptions(BaseModel):
    temperature: float = 0.7
    num_predict: int = 2048


class ChatPayload(BaseModel):
    model: str
    messages: list[dict] = Field(default_factory=list)
    stream: bool = True
    options: Optional[ChatOptions] = None
