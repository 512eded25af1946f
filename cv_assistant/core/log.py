from __future__ import annotations

from cv_assistant.core.config import settings


def clip(value: object, max_chars: int | None = None) -> str:
    """Cap raw library/provider text before it reaches the logs."""
    limit = max_chars or settings.log_message_max_chars
    text = str(value or "").replace("\n", " ").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
