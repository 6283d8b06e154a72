"""Common utility helpers."""

from __future__ import annotations

from datetime import datetime, timezone
from time import perf_counter

TITLE_MAX_LENGTH = 50


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def elapsed_ms(started: float) -> int:
    return int((perf_counter() - started) * 1000)


def chunk_text(text: str, size: int = 120) -> list[str]:
    if size <= 0:
        raise ValueError("size must be > 0")
    if not text:
        return []
    return [text[i : i + size] for i in range(0, len(text), size)]


def _capitalize_first(text: str) -> str:
    return text[:1].upper() + text[1:]


def format_title(text: str, max_length: int = TITLE_MAX_LENGTH) -> str:
    """Build a short chat title from the first symptom message.

    Short texts are kept whole. Longer ones are cut to ``max_length`` characters,
    pulled back to the last space inside that slice and suffixed with ``...``.
    """
    cleaned = text.strip()
    if len(cleaned) <= max_length:
        return _capitalize_first(cleaned)

    title = cleaned[:max_length]
    last_space = title.rfind(" ")
    if last_space > 0:
        title = title[:last_space]
    return _capitalize_first(title) + "..."


def default_chat_title(now: datetime | None = None) -> str:
    moment = now or utc_now()
    return f"Консультация от {moment.strftime('%d.%m.%Y')}"
