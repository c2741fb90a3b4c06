import json
import logging
from contextlib import contextmanager
from typing import AsyncGenerator, Iterator, Optional

import httpx

from .errors import (
    ModelNotFoundError,
    OllamaConnectionError,
    OllamaResponseError,
    OllamaTimeoutError,
)
from .models import ChatChunk, ChatOptions, ChatPayload, ModelDescriptor

logger = logging.getLogger(__name__)


@contextmanager
def _translate_errors() -> Iterator[None]:
    """Map httpx transport failures onto the OllamaError hierarchy."""
    try:
        yield
    except httpx.ConnectError as e:
        raise OllamaConnectionError(str(e) or "connection refused") from e
    except httpx.TimeoutException as e:
        raise OllamaTimeoutError(str(e) or "timeout") from e
    except httpx.HTTPStatusError as e:
        raise OllamaResponseError(str(e), status_code=e.response.status_code) from e
    except httpx.TransportError as e:
        raise OllamaConnectionError(str(e) or type(e).__name__) from e


def _error_detail(body: bytes) -> str:
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return body.decode("utf-8", errors="replace").strip()
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return str(data)


class OllamaClient:
    """Async HTTP client for a locally running Ollama server."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=5.0),
            transport=transport,
        )

    async def __aenter__(self) -> "OllamaClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def list_models(self) -> list[ModelDescriptor]:
        with _translate_errors():
            resp = await self.client.get("/api/tags")
            resp.raise_for_status()
        data = resp.json()
        return [
            ModelDescriptor(
                name=m["name"],
                size=m.get("size"),
                modified=m.get("modified_at"),
            )
            for m in data.get("models") or []
        ]

    async def ping(self, timeout: float = 3.0) -> bool:
        """Return True when the server answers at all (404 counts as up)."""
        try:
            resp = await self.client.head("/", timeout=timeout)
        except httpx.HTTPError as e:
            logger.debug("Ollama ping failed: %s", e)
            return False
        return resp.is_success or resp.status_code == 404

    async def chat_stream(
        self,
        messages: list[dict],
        model: str,
        options: Optional[ChatOptions] = None,
    ) -> AsyncGenerator[ChatChunk, None]:
        """Stream a chat turn, yielding one ChatChunk per NDJSON line."""
        payload = ChatPayload(model=model, messages=messages, stream=True, options=options)
        with _translate_errors():
            async with self.client.stream(
                "POST", "/api/chat", json=payload.model_dump(exclude_none=True)
            ) as resp:
                if resp.status_code >= 400:
                    detail = _error_detail(await resp.aread())
                    if resp.status_code == 404 and "not found" in detail.lower():
                        raise ModelNotFoundError(model)
                    raise OllamaResponseError(
                        f"Server error: {resp.status_code} {detail}".strip(),
                        status_code=resp.status_code,
                    )
                async for line in resp.aiter_lines():
                    if not line.strip():
                        continue
                    try:
                        chunk = ChatChunk.model_validate(json.loads(line))
                    except (json.JSONDecodeError, ValueError):
                        logger.debug("Skipping malformed stream line: %r", line[:200])
                        continue
                    if chunk.error:
                        raise OllamaResponseError(chunk.error)
                    yield chunk
                    if chunk.done:
                        return
