"""Pytest configuration and shared fixtures."""
import asyncio
import json
import os
import tempfile

# Keep config and chat files out of the real home directory
os.environ["STUDIO_CONFIG_DIR"] = tempfile.mkdtemp(prefix="studio-test-")
os.environ.pop("PORT", None)
os.environ.pop("OLLAMA_HOST", None)

import httpx
import pytest

from studio.chat import ChatController, ChatStore
from studio.ollama import OllamaClient


class HangingStream(httpx.AsyncByteStream):
    """Sends the given lines, then never finishes."""

    def __init__(self, lines: list[bytes]):
        self.lines = lines

    async def __aiter__(self):
        for line in self.lines:
            yield line
        await asyncio.Event().wait()


class FakeOllama:
    """Minimal stand-in for the Ollama HTTP API."""

    def __init__(
        self,
        models: list[str] | None = None,
        tokens: list[str] | None = None,
        reachable: bool = True,
        hang: bool = False,
        stream_error: str | None = None,
    ):
        self.models = models if models is not None else ["llama3.2:latest", "qwen2.5-coder:1.5b"]
        self.tokens = tokens if tokens is not None else ["Hello", " world"]
        self.reachable = reachable
        self.hang = hang
        self.stream_error = stream_error
        self.chat_requests: list[dict] = []

    def _chat_lines(self, model: str) -> list[bytes]:
        lines = [
            {"model": model, "message": {"role": "assistant", "content": t}, "done": False}
            for t in self.tokens
        ]
        if self.stream_error:
            lines.append({"error": self.stream_error})
        elif not self.hang:
            lines.append(
                {
                    "model": model,
                    "message": {"role": "assistant", "content": ""},
                    "done": True,
                    "total_duration": 2_500_000_000,
                    "eval_count": 42,
                    "eval_duration": 2_000_000_000,
                }
            )
        return [(json.dumps(line) + "\n").encode() for line in lines]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if not self.reachable:
            raise httpx.ConnectError("[Errno 111] Connection refused", request=request)
        if request.method == "HEAD" and request.url.path == "/":
            return httpx.Response(200)
        if request.url.path == "/api/tags":
            return httpx.Response(
                200,
                json={
                    "models": [
                        {"name": m, "size": 986_000_000, "modified_at": "2024-10-01T10:00:00Z"}
                        for m in self.models
                    ]
                },
            )
        if request.url.path == "/api/chat":
            body = json.loads(request.content)
            self.chat_requests.append(body)
            if body["model"] not in self.models:
                return httpx.Response(404, json={"error": f"model '{body['model']}' not found"})
            lines = self._chat_lines(body["model"])
            if self.hang:
                return httpx.Response(200, stream=HangingStream(lines))
            return httpx.Response(200, content=b"".join(lines))
        return httpx.Response(404, text="404 page not found")

    def client(self) -> OllamaClient:
        return OllamaClient("http://ollama.test", transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_ollama():
    return FakeOllama()


@pytest.fixture
def chat_store(tmp_path):
    return ChatStore(tmp_path / "chats")


@pytest.fixture
def make_controller(chat_store):
    """Build a ChatController around a FakeOllama."""
    def _make(fake: FakeOllama, model: str = "llama3.2:latest") -> ChatController:
        controller = ChatController(fake.client(), chat_store, fallback_models=["qwen2.5-coder:1.5b"])
        controller.set_model(model)
        return controller
    return _make
