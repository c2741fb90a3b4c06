import json
import logging
from pathlib import Path
from typing import Optional

from .models import (
    NEW_CHAT_TITLE,
    TITLE_LENGTH,
    Chat,
    ChatSummary,
    Message,
    make_title,
    now_ms,
)

logger = logging.getLogger(__name__)


class ChatStore:
    """Chat transcripts on disk: one JSON file per chat id plus an index."""

    def __init__(self, root: Path, title_length: int = TITLE_LENGTH) -> None:
        self.root = Path(root)
        self.title_length = title_length
        self._index_file = self.root / "_index.json"

    def _ensure_dir(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    def _chat_file(self, chat_id: int) -> Path:
        return self.root / f"{int(chat_id)}.json"

    # ---- Index helpers ----

    def _load_index(self) -> list[dict]:
        self._ensure_dir()
        if self._index_file.exists():
            try:
                return json.loads(self._index_file.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError):
                logger.warning("Failed to load chat index %s", self._index_file)
        return []

    def _save_index(self, items: list[dict]) -> None:
        self._ensure_dir()
        self._index_file.write_text(
            json.dumps(items, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

    def _update_index_entry(self, chat: Chat) -> None:
        items = self._load_index()
        summary = ChatSummary(
            id=chat.id,
            title=chat.title,
            model=chat.model,
            message_count=len(chat.messages),
            updated_at=chat.updated_at,
        ).model_dump()
        for i, item in enumerate(items):
            if item["id"] == chat.id:
                items[i] = summary
                break
        else:
            items.append(summary)
        self._save_index(items)

    # ---- CRUD ----

    def list_chats(self) -> list[ChatSummary]:
        """Return all chat summaries, most recently updated first."""
        summaries = [ChatSummary(**item) for item in self._load_index()]
        summaries.sort(key=lambda s: s.updated_at, reverse=True)
        return summaries

    def get_chat(self, chat_id: int) -> Optional[Chat]:
        self._ensure_dir()
        chat_file = self._chat_file(chat_id)
        if chat_file.exists():
            try:
                return Chat.model_validate_json(chat_file.read_text(encoding="utf-8"))
            except (OSError, ValueError):
                logger.error("Failed to load chat %s", chat_id)
        return None

    def save_chat(
        self, chat_id: int, messages: list[Message], model: str
    ) -> Optional[Chat]:
        """Persist the full message list of a chat.

        Empty chats are not written. The title is derived from the first
        user message unless the chat already has a non-generic one.
        """
        if not messages:
            return None

        existing = self.get_chat(chat_id)
        title = existing.title if existing else ""
        if not title or title == NEW_CHAT_TITLE:
            first_user = next((m for m in messages if m.role == "user"), None)
            if first_user is not None:
                title = make_title(first_user.content, self.title_length)
            else:
                title = NEW_CHAT_TITLE

        chat = Chat(
            id=chat_id,
            title=title,
            messages=list(messages),
            updated_at=now_ms(),
            model=model,
        )
        self._ensure_dir()
        self._chat_file(chat_id).write_text(
            chat.model_dump_json(indent=2), encoding="utf-8"
        )
        self._update_index_entry(chat)
        return chat

    def delete_chat(self, chat_id: int) -> bool:
        self._ensure_dir()
        chat_file = self._chat_file(chat_id)
        removed = chat_file.exists()
        if removed:
            chat_file.unlink()
        items = self._load_index()
        kept = [i for i in items if i["id"] != chat_id]
        if len(kept) < len(items):
            self._save_index(kept)
            removed = True
        return removed

    def titles(self) -> dict[int, str]:
        """Chat id to title map for the sidebar."""
        return {s.id: s.title for s in self.list_chats()}
