"""Integration tests for the HTTP API using FastAPI's TestClient."""
import logging

import pytest
from fastapi.testclient import TestClient

from studio import __version__
from studio.chat import Message
from studio.config import get_config, update_config
from studio.main import create_app
from studio.relay import SessionStore
from tests.conftest import FakeOllama


@pytest.fixture
def sessions():
    return SessionStore()


@pytest.fixture
def make_client(chat_store, sessions):
    """Start the app around a FakeOllama and yield a TestClient."""
    clients = []

    def _make(fake: FakeOllama | None = None) -> TestClient:
        fake = fake or FakeOllama()
        app = create_app(
            ollama=fake.client(), chat_store=chat_store, sessions=sessions, sweep=False
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


class TestChatRelay:
    """Tests for /api/chat."""

    def test_streams_plain_text_reply(self, client, sessions):
        resp = client.post(
            "/api/chat",
            json={"message": "Explain recursion", "chatId": "abc", "model": "llama3.2:latest"},
        )

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/plain")
        assert resp.text == "Hello world"
        assert sessions.get("abc").messages == [
            {"role": "user", "content": "Explain recursion"},
            {"role": "assistant", "content": "Hello world"},
        ]

    def test_numeric_chat_id_and_default_model(self, make_client, sessions):
        fake = FakeOllama()
        client = make_client(fake)

        resp = client.post("/api/chat", json={"message": "hi", "chatId": 1700000000000})

        assert resp.status_code == 200
        assert "1700000000000" in sessions
        assert fake.chat_requests[0]["model"] == get_config().ollama.default_model

    def test_empty_message_is_rejected(self, client, sessions):
        resp = client.post("/api/chat", json={"message": "   ", "chatId": "abc"})

        assert resp.status_code == 400
        assert resp.json() == {"detail": "Message cannot be empty"}
        assert len(sessions) == 0

    def test_missing_chat_id_is_rejected(self, client):
        resp = client.post("/api/chat", json={"message": "hi"})

        assert resp.status_code == 400
        assert resp.json() == {"detail": "Chat ID is required"}

    def test_missing_model_is_reported_in_stream(self, client):
        resp = client.post(
            "/api/chat", json={"message": "hi", "chatId": "abc", "model": "mistral:7b"}
        )

        assert resp.status_code == 200
        assert resp.text.startswith("❌ Model 'mistral:7b' not found.")
        assert "ollama pull mistral:7b" in resp.text

    def test_unreachable_server_is_reported_in_stream(self, make_client):
        client = make_client(FakeOllama(reachable=False))

        resp = client.post("/api/chat", json={"message": "hi", "chatId": "abc"})

        assert resp.status_code == 200
        assert resp.text == "❌ Cannot connect to Ollama.\n\nStart Ollama: ollama serve"

    def test_empty_reply_is_reported_in_stream(self, make_client):
        client = make_client(FakeOllama(tokens=[]))

        resp = client.post("/api/chat", json={"message": "hi", "chatId": "abc"})

        assert "Empty response" in resp.text

    def test_stop_without_generation(self, client):
        resp = client.post("/api/chat/abc/stop")
        assert resp.json() == {"status": "no_active_generation"}

    def test_stop_active_generation(self, client, sessions):
        sessions.begin_turn("abc")
        resp = client.post("/api/chat/abc/stop")
        assert resp.json() == {"status": "stopped"}

    def test_delete_session(self, client, sessions):
        client.post("/api/chat", json={"message": "hi", "chatId": "abc", "model": "llama3.2:latest"})

        first = client.delete("/api/chat/abc")
        second = client.delete("/api/chat/abc")

        assert first.status_code == 200
        assert first.json() == {"success": True}
        assert "abc" not in sessions
        assert second.status_code == 404
        assert second.json() == {"success": False}


class TestHealthAndModels:
    """Tests for /api/health and /api/models."""

    def test_health_ok(self, client):
        resp = client.get("/api/health")
        body = resp.json()

        assert resp.status_code == 200
        assert body["status"] == "ok"
        assert body["version"] == __version__
        assert body["ollama"] == "connected"
        assert body["model_count"] == 2
        assert body["timestamp"]

    def test_health_degraded(self, make_client):
        client = make_client(FakeOllama(reachable=False))

        resp = client.get("/api/health")
        body = resp.json()

        assert resp.status_code == 503
        assert body["status"] == "degraded"
        assert body["ollama"] == "disconnected"
        assert body["error"]

    def test_models(self, client):
        resp = client.get("/api/models")

        assert resp.status_code == 200
        assert [m["name"] for m in resp.json()["models"]] == [
            "llama3.2:latest",
            "qwen2.5-coder:1.5b",
        ]

    def test_models_unreachable(self, make_client):
        client = make_client(FakeOllama(reachable=False))

        resp = client.get("/api/models")

        assert resp.status_code == 500
        assert resp.json()["error"] == "Cannot fetch models from Ollama"


class TestChatHistoryApi:
    """Tests for /api/chats."""

    def test_crud(self, client):
        payload = {
            "messages": [
                {"role": "user", "content": "Explain recursion"},
                {"role": "assistant", "content": "A function calling itself."},
            ],
            "model": "llama3.2:latest",
        }

        saved = client.put("/api/chats/1700000000000", json=payload)
        assert saved.status_code == 200
        assert saved.json()["chat"]["title"] == "Explain recursion"

        listing = client.get("/api/chats").json()["chats"]
        assert [c["id"] for c in listing] == [1700000000000]
        assert listing[0]["message_count"] == 2

        chat = client.get("/api/chats/1700000000000").json()["chat"]
        assert chat["model"] == "llama3.2:latest"
        assert len(chat["messages"]) == 2

        assert client.delete("/api/chats/1700000000000").json() == {"status": "deleted"}
        assert client.get("/api/chats/1700000000000").status_code == 404
        assert client.delete("/api/chats/1700000000000").status_code == 404

    def test_empty_chat_is_rejected(self, client):
        resp = client.put("/api/chats/1", json={"messages": []})

        assert resp.status_code == 400
        assert resp.json() == {"detail": "Chat has no messages"}


class TestViewer:
    """Tests for the HTML chat viewer."""

    def test_index_lists_chats(self, client, chat_store):
        chat_store.save_chat(42, [Message(role="user", content="Explain recursion")], "m")

        resp = client.get("/")

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/html")
        assert 'href="/chats/42"' in resp.text
        assert "Explain recursion" in resp.text

    def test_chat_page_renders_markdown(self, client, chat_store):
        chat_store.save_chat(
            42,
            [
                Message(role="user", content="Explain **recursion**"),
                Message(role="assistant", content="It is **self-reference**."),
            ],
            "llama3.2:latest",
        )

        resp = client.get("/chats/42")

        assert resp.status_code == 200
        assert "<strong>self-reference</strong>" in resp.text
        assert "Explain **recursion**" in resp.text
        assert 'class="active"' in resp.text

    def test_missing_chat_page(self, client):
        resp = client.get("/chats/999")

        assert resp.status_code == 404
        assert "Chat not found" in resp.text


class TestCacheHeaders:
    """Tests for the cache-control middleware."""

    def test_api_is_never_cached(self, client):
        assert client.get("/api/health").headers["cache-control"] == "no-store"

    def test_streamed_chat_is_not_stored(self, client):
        resp = client.post("/api/chat", json={"message": "hi", "chatId": "abc"})
        assert resp.headers["cache-control"] == "no-store"

    def test_static_assets_are_cacheable(self, client):
        resp = client.get("/static/styles.css")

        assert resp.status_code == 200
        assert resp.headers["cache-control"] == "public, max-age=86400"

    def test_pages_are_revalidated(self, client):
        assert client.get("/").headers["cache-control"] == "no-cache"


class TestErrors:
    """Tests for error responses."""

    def test_unknown_path_returns_json_404(self, client):
        resp = client.get("/api/does-not-exist")

        assert resp.status_code == 404
        assert resp.json() == {"error": "Not Found", "path": "/api/does-not-exist"}


class TestLogsAndSettings:
    """Tests for /api/logs and /api/settings."""

    def test_logs_buffer_and_clear(self, client):
        logging.getLogger("studio.tests").warning("relay log marker")

        logs = client.get("/api/logs").json()["logs"]
        assert any("relay log marker" in entry["message"] for entry in logs)

        streamed = client.get("/api/logs/stream", params={"follow": "false"})
        assert streamed.headers["content-type"].startswith("text/event-stream")
        assert "relay log marker" in streamed.text

        assert client.delete("/api/logs").json() == {"status": "ok"}
        logs = client.get("/api/logs").json()["logs"]
        assert not any("relay log marker" in entry["message"] for entry in logs)

    def test_settings_round_trip(self, client):
        original = get_config().model_copy(deep=True)
        try:
            settings = client.get("/api/settings").json()
            assert settings["ollama"]["base_url"] == original.ollama.base_url

            settings["ollama"]["temperature"] = 0.2
            updated = client.put("/api/settings", json=settings).json()

            assert updated["ollama"]["temperature"] == 0.2
            assert get_config().ollama.temperature == 0.2
        finally:
            update_config(original)

    def test_changing_server_keeps_old_client_open(self, client):
        original = get_config().model_copy(deep=True)
        old = client.app.state.ollama
        try:
            settings = client.get("/api/settings").json()
            settings["ollama"]["base_url"] = "http://other-host.test:11434"

            resp = client.put("/api/settings", json=settings)

            assert resp.status_code == 200
            new = client.app.state.ollama
            assert new is not old
            assert new.base_url == "http://other-host.test:11434"
            assert old.client.is_closed is False
            assert client.app.state.retired_clients == [old]
        finally:
            update_config(original)
