"""Collapse provider message content into displayable text.

Message content arrives in two shapes:

* a plain string (local SQLite history, normalized provider history), or
* the raw OpenAI shape: an ordered list of content parts such as
  ``{"type": "text", "text": {"value": "...", "annotations": []}}`` next to
  other typed parts (images, files) that have no text to show.
"""

from __future__ import annotations

from typing import Any

FALLBACK_CONTENT = "Unable to display message content"


def _field(obj: Any, name: str) -> Any:
    """Read ``name`` from a dict or from an SDK object attribute."""
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _text_value(part: Any) -> str | None:
    if _field(part, "type") != "text":
        return None
    value = _field(_field(part, "text"), "value")
    if isinstance(value, str) and value:
        return value
    return None


def extract_message_content(content: Any) -> str:
    """Return ``content`` as a single display string. Never raises."""
    if isinstance(content, str):
        return content

    if isinstance(content, (list, tuple)):
        values = [_text_value(part) for part in content]
        return "\n".join(v for v in values if v is not None)

    return FALLBACK_CONTENT
