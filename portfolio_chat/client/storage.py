"""Key/value storage backends for chat identity.

``MemoryStorage`` plays the role of tab-scoped storage: it lives exactly as
long as the client that owns it. ``JsonFileStorage`` is durable and survives
restarts, which is what the pseudo user id needs.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, MutableMapping, Optional, Protocol

from portfolio_chat.utils.logger import get_logger

logger = get_logger(__name__)


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryStorage:
    """Dict-backed storage, optionally wrapping an existing mapping (e.g. ``st.session_state``)."""

    def __init__(self, backing: MutableMapping | None = None):
        self._data: MutableMapping = backing if backing is not None else {}

    def get(self, key: str) -> Optional[str]:
        value = self._data.get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]


class JsonFileStorage:
    """Durable storage persisted as a flat JSON object on disk."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable storage file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def get(self, key: str) -> Optional[str]:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)
