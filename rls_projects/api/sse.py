"""
Server-sent events formatting.
"""

from __future__ import annotations

import json
from typing import Any


def sse_event(event: str, data: Any) -> str:
    """
    Format a single SSE event string.

    Args:
        event: Event type (e.g. "project_created", "ready").
        data: Payload, JSON-serialized unless already a string.
    """
    if isinstance(data, str):
        serialized = data
    else:
        serialized = json.dumps(data, ensure_ascii=False)
    return f"event: {event}\ndata: {serialized}\n\n"


def sse_comment(text: str = "keepalive") -> str:
    """Comment line; keeps idle connections open through proxies."""
    return f": {text}\n\n"
