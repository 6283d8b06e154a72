"""Filesystem-backed chat store.

Stands in for the persistence collaborator: chats live as one JSON document each under
``<local_storage_dir>/chats/<user_id>/``. The engine itself only reads from it through
``recent_active_chats``.
"""

from __future__ import annotations

import json
from pathlib import Path

from symptomdx.config import Settings
from symptomdx.schemas import ChatRecord
from symptomdx.utils import utc_now


def _safe_name(value: str) -> str:
    return "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in value) or "_"


class LocalChatStore:
    def __init__(self, settings: Settings):
        self._settings = settings
        self._root = Path(settings.local_storage_dir) / "chats"
        self._root.mkdir(parents=True, exist_ok=True)

    def _user_dir(self, user_id: str) -> Path:
        return self._root / _safe_name(user_id)

    def _chat_path(self, user_id: str, chat_id: str) -> Path:
        return self._user_dir(user_id) / f"{_safe_name(chat_id)}.json"

    async def save_chat(self, chat: ChatRecord, *, touch: bool = True) -> ChatRecord:
        if touch:
            chat = chat.model_copy(update={"updated_at": utc_now()})
        path = self._chat_path(chat.user_id, chat.chat_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(chat.model_dump(mode="json"), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )
        return chat

    def read_chat(self, user_id: str, chat_id: str) -> ChatRecord | None:
        path = self._chat_path(user_id, chat_id)
        if not path.exists():
            return None
        return ChatRecord.model_validate_json(path.read_text(encoding="utf-8"))

    async def close_chat(self, user_id: str, chat_id: str) -> ChatRecord | None:
        chat = self.read_chat(user_id, chat_id)
        if chat is None:
            return None
        return await self.save_chat(chat.model_copy(update={"is_active": False}))

    async def recent_active_chats(self, user_id: str, limit: int = 3) -> list[ChatRecord]:
        user_dir = self._user_dir(user_id)
        if not user_dir.exists():
            return []

        chats: list[ChatRecord] = []
        for path in user_dir.glob("*.json"):
            try:
                chats.append(ChatRecord.model_validate_json(path.read_text(encoding="utf-8")))
            except (ValueError, OSError) as exc:
                print(f"[symptomdx] chat_skipped: {path.name}: {type(exc).__name__}")
        active = [chat for chat in chats if chat.is_active and chat.user_id == user_id]
        active.sort(key=lambda chat: chat.updated_at, reverse=True)
        return active[:limit]
