class OllamaError(Exception):
    """Base class for failures talking to the inference server."""


class OllamaConnectionError(OllamaError):
    """The inference server could not be reached."""


class OllamaTimeoutError(OllamaError):
    """The inference server stopped answering in time."""


class OllamaResponseError(OllamaError):
    """The inference server answered with an error status or error record."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ModelNotFoundError(OllamaResponseError):
    """The requested model is not installed."""

    def __init__(self, model: str, available: list[str] | None = None) -> None:
        super().__init__(f"model '{model}' not found", status_code=404)
        self.model = model
        self.available = available or []


class EmptyResponseError(OllamaError):
    """The stream completed without any generated text."""

    def __init__(self, message: str = "No response received from model") -> None:
        super().__init__(message)
