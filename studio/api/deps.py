from fastapi import Request

from ..chat.storage import ChatStore
from ..ollama import OllamaClient
from ..relay.sessions import SessionStore


def get_ollama(request: Request) -> OllamaClient:
    return request.app.state.ollama


def get_sessions(request: Request) -> SessionStore:
    return request.app.state.sessions


def get_chat_store(request: Request) -> ChatStore:
    return request.app.state.chat_store
