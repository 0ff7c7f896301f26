"""Parser for the chat event stream.

Two framings are accepted:

* standard SSE-style frames, ``data: {...}`` separated by a blank line;
* a legacy framing of one bare JSON object per line.

Malformed lines are logged and skipped so one bad frame never aborts a stream.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List

from portfolio_chat.utils.logger import get_logger

logger = get_logger(__name__)

DATA_PREFIX = "data: "


def _split_frames(raw_text: str) -> List[str]:
    if "\n\n" in raw_text:
        return raw_text.split("\n\n")
    return raw_text.split("\n")


def _parse_line(line: str) -> Dict[str, Any] | None:
    line = line.strip()
    if not line:
        return None
    if line.startswith(DATA_PREFIX):
        line = line[len(DATA_PREFIX):]
    elif line.startswith("data:"):
        line = line[len("data:"):]

    try:
        event = json.loads(line)
    except json.JSONDecodeError as e:
        logger.warning("Skipping malformed stream line %r: %s", line[:200], e)
        return None

    if not isinstance(event, dict):
        logger.warning("Skipping non-object stream event %r", line[:200])
        return None
    return event


def _parse_frames(frames: List[str]) -> List[Dict[str, Any]]:
    events: List[Dict[str, Any]] = []
    for frame in frames:
        for line in frame.split("\n"):
            event = _parse_line(line)
            if event is not None:
                events.append(event)
    return events


def parse_chunk(raw_text: str) -> List[Dict[str, Any]]:
    """Return every event found in ``raw_text``, in order."""
    return _parse_frames(_split_frames(raw_text))


class StreamParser:
    """Incremental wrapper around :func:`parse_chunk`.

    Transport chunks do not line up with frames, so the text after the last
    frame delimiter is held back until more text (or the end of the body)
    arrives.
    """

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, text: str) -> List[Dict[str, Any]]:
        self._buffer += text
        frames = _split_frames(self._buffer)
        self._buffer = frames.pop()
        return _parse_frames(frames)

    def flush(self) -> List[Dict[str, Any]]:
        remainder, self._buffer = self._buffer, ""
        return parse_chunk(remainder)
