"""Recent symptom history used to enrich a diagnosis."""

from __future__ import annotations

from typing import Protocol

from symptomdx.schemas import ChatRecord


class ChatStore(Protocol):
    async def recent_active_chats(self, user_id: str, limit: int = 3) -> list[ChatRecord]: ...


class ContextAggregator:
    def __init__(self, store: ChatStore, *, limit: int = 3):
        self._store = store
        self._limit = limit

    async def load(self, user_id: str) -> list[str]:
        """Symptoms of the user's most recently updated active chats.

        Chats come newest first and each keeps its own message order. The chat being
        answered is not excluded. Store failures yield an empty history.
        """
        try:
            chats = await self._store.recent_active_chats(user_id, limit=self._limit)
            return [symptom for chat in chats for symptom in chat.symptoms]
        except Exception as exc:
            print(f"[symptomdx] context_load_failed: {type(exc).__name__}: {exc}")
            return []
