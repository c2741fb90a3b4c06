"""Read-only HTML view of stored chats."""

from datetime import datetime

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from ..chat.storage import ChatStore
from ..markdown import escape_html, render_message
from .deps import get_chat_store

router = APIRouter(tags=["viewer"])

_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{title}</title>
<link rel="manifest" href="/static/manifest.json">
<link rel="stylesheet" href="/static/styles.css">
</head>
<body>
<aside class="sidebar">
<a class="brand" href="/">Qwen Studio</a>
<nav class="chat-list">{sidebar}</nav>
</aside>
<main class="chat-window">{body}</main>
</body>
</html>
"""


def _sidebar(store: ChatStore, current: int | None = None) -> str:
    items = []
    for s in store.list_chats():
        active = ' class="active"' if s.id == current else ""
        items.append(f'<a{active} href="/chats/{s.id}">{escape_html(s.title)}</a>')
    return "".join(items) or '<p class="empty">No chats yet</p>'


def _page(title: str, sidebar: str, body: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(
        content=_PAGE.format(title=escape_html(title), sidebar=sidebar, body=body),
        status_code=status_code,
    )


@router.get("/", response_class=HTMLResponse)
async def index(store: ChatStore = Depends(get_chat_store)):
    body = (
        '<div class="welcome"><h2>Qwen Studio</h2>'
        "<p>Chat with AI models powered by Ollama</p>"
        "<p>Start a conversation with <code>studio chat</code>.</p></div>"
    )
    return _page("Qwen Studio", _sidebar(store), body)


@router.get("/chats/{chat_id}", response_class=HTMLResponse)
async def view_chat(chat_id: int, store: ChatStore = Depends(get_chat_store)):
    chat = store.get_chat(chat_id)
    if chat is None:
        body = '<div class="welcome"><h2>Chat not found</h2></div>'
        return _page("Chat not found", _sidebar(store), body, status_code=404)

    updated = datetime.fromtimestamp(chat.updated_at / 1000).strftime("%Y-%m-%d %H:%M")
    header = (
        f'<header class="chat-header"><h1>{escape_html(chat.title)}</h1>'
        f'<p class="meta">{escape_html(chat.model)} · {updated}</p></header>'
    )
    messages = "".join(render_message(m) for m in chat.messages)
    return _page(chat.title, _sidebar(store, chat.id), header + messages)
