from .client import OllamaClient
from .errors import (
    EmptyResponseError,
    ModelNotFoundError,
    OllamaConnectionError,
    OllamaError,
    OllamaResponseError,
    OllamaTimeoutError,
)
from .models import ChatChunk, ChatOptions, ModelDescriptor

__all__ = [
    "ChatChunk",
    "ChatOptions",
    "EmptyResponseError",
    "ModelDescriptor",
    "ModelNotFoundError",
    "OllamaClient",
    "OllamaConnectionError",
    "OllamaError",
    "OllamaResponseError",
    "OllamaTimeoutError",
]
