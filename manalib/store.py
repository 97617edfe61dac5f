"""Key-value store backends for the circulation engine.

The engine only needs ``get(key)`` and ``set(key, value)`` over JSON
values. ``MemoryStore`` keeps everything in a dict and is what the tests
use; ``JsonFileStore`` writes one JSON file per key into a data directory.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .errors import PersistenceError

_LOGGER = logging.getLogger(__name__)

STORAGE_KEYS = {
    "libraries": "mana_libraries",
    "books": "mana_books",
    "users": "mana_users",
    "transactions": "mana_transactions",
}


class KeyValueStore(ABC):
    """Abstract base class for JSON key-value backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the JSON value stored under ``key``, or None if unset."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store ``value`` (any JSON-serialisable object) under ``key``."""


class MemoryStore(KeyValueStore):
    """Dict-backed store. Values are deep-copied in and out like a real store."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            if key not in self._data:
                return None
            return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)


class JsonFileStore(KeyValueStore):
    """Store each key as ``<data_dir>/<key>.json``, written atomically."""

    def __init__(self, data_dir: Union[str, Path]) -> None:
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self._data_dir / f"{key}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            _LOGGER.debug("No data file for key %s", key)
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as exc:
            _LOGGER.error("Failed to read %s: %s", path, exc)
            raise PersistenceError(f"failed to read {key!r}: {exc}") from exc

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, path)
        except (TypeError, ValueError, OSError) as exc:
            tmp_path.unlink(missing_ok=True)
            _LOGGER.error("Failed to write %s: %s", path, exc)
            raise PersistenceError(f"failed to write {key!r}: {exc}") from exc
