"""Server-sent event helpers for streamed diagnoses."""

from __future__ import annotations

import json
from typing import Any

KEEP_ALIVE = ": keep-alive\n\n"


def format_sse(event: str, payload: dict[str, Any]) -> str:
    # Diagnosis text is Cyrillic; keep it readable on the wire.
    data = json.dumps(payload, ensure_ascii=False, separators=(",", ":"), default=str)
    return f"event: {event}\ndata: {data}\n\n"
