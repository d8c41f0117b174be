from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

from .errors import PersistenceError
from .paths import default_store_path, ensure_dir

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Durable string key-value storage, in the spirit of browser localStorage."""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored string, or None if the key is absent."""

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``. Raises PersistenceError on failure."""

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove ``key`` if present."""

    @abstractmethod
    def keys(self) -> Iterator[str]:
        ...


class InMemoryKeyValueStore(KeyValueStore):
    """Test/deterministic store that holds data in memory only."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise PersistenceError(f"value for {key!r} must be a string")
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))


def _atomic_write_text(path: Path, text: str) -> None:
    """Write text next to ``path`` and move it into place in one step."""
    ensure_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=path.name, dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    finally:
        if os.path.exists(tmp_name):
            try:
                os.remove(tmp_name)
            except OSError:
                logger.debug("Could not remove temp file %s", tmp_name, exc_info=True)


class JSONFileKeyValueStore(KeyValueStore):
    """Key-value store persisted as one JSON object of key -> string.

    File structure:
    {
      "currentUser": "alice",
      "gameSaveData": "{\\"alice\\": {...}}"
    }

    Every write rewrites the whole file atomically. There is no locking
    across processes; the last writer wins.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path = Path(path) if path is not None else default_store_path()
        self._lock = threading.RLock()

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.error("Failed to read key-value store %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.error("Key-value store %s is not a JSON object; ignoring contents", self.path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: Dict[str, str]) -> None:
        try:
            _atomic_write_text(self.path, json.dumps(data, ensure_ascii=False, sort_keys=True, indent=2))
        except OSError as exc:
            logger.exception("Failed to write key-value store %s", self.path)
            raise PersistenceError(str(exc)) from exc

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read_all().get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise PersistenceError(f"value for {key!r} must be a string")
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove_item(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)

    def keys(self) -> Iterator[str]:
        with self._lock:
            return iter(list(self._read_all()))
