from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import PersistenceError, SaveValidationError
from .models import MAX_SAVES, BackpackData, SaveRecord, SaveSummary, UserSaveBucket
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

SaveStoreRoot = Dict[str, UserSaveBucket]

DEFAULT_STORE_KEY = "gameSaveData"


@dataclass
class _RootDocument:
    """Decoded root plus the raw JSON of buckets that failed to decode.

    Unreadable buckets are hidden from reads but written back unchanged, so
    one damaged user never costs the other users their saves.
    """

    buckets: SaveStoreRoot = field(default_factory=dict)
    unreadable: Dict[str, Any] = field(default_factory=dict)

    def set(self, username: str, bucket: UserSaveBucket) -> None:
        self.unreadable.pop(username, None)
        self.buckets[username] = bucket

    def remove(self, username: str) -> None:
        self.unreadable.pop(username, None)
        self.buckets.pop(username, None)


class SaveStore:
    """All users' save buckets, stored as one JSON document under a single key.

    Every public method reads the whole document, so a change made through
    another SaveStore on the same key-value store is visible immediately.
    A missing or corrupt document reads as "no saves"; a single malformed
    user bucket reads as absent and is kept as-is on the next write. Write
    failures are logged and reported as ``False``; they are never raised to
    the caller.
    """

    def __init__(self, kv_store: KeyValueStore, key: str = DEFAULT_STORE_KEY, max_saves: int = MAX_SAVES) -> None:
        self.kv_store = kv_store
        self.key = key
        self.max_saves = max_saves
        self._lock = threading.RLock()

    # Internal utilities

    def _read_root(self) -> _RootDocument:
        doc = _RootDocument()
        raw = self.kv_store.get_item(self.key)
        if not raw:
            return doc
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning("Save data under %r is not valid JSON; treating as empty: %s", self.key, e)
            return doc
        if not isinstance(data, dict):
            logger.warning("Save data under %r is not an object; treating as empty", self.key)
            return doc
        for user, bucket in data.items():
            try:
                doc.buckets[str(user)] = UserSaveBucket.from_dict(bucket)
            except (SaveValidationError, TypeError, ValueError) as e:
                logger.warning("Saves for user %r are malformed; leaving them untouched: %s", user, e)
                doc.unreadable[str(user)] = bucket
        return doc

    def _write_root(self, doc: _RootDocument) -> None:
        payload: Dict[str, Any] = dict(doc.unreadable)
        try:
            payload.update({user: bucket.to_dict() for user, bucket in doc.buckets.items()})
            text = json.dumps(payload, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Save data is not serializable: {e}") from e
        self.kv_store.set_item(self.key, text)

    def _load_root(self) -> SaveStoreRoot:
        try:
            return self._read_root().buckets
        except PersistenceError:
            logger.exception("Failed to read save data under %r", self.key)
            return {}

    # Public API

    def upsert(self, username: str, record: SaveRecord) -> bool:
        """Store ``record`` as the save for its chapter. Returns False on failure."""
        with self._lock:
            try:
                doc = self._read_root()
                bucket = doc.buckets.get(username)
                if bucket is None:
                    bucket = UserSaveBucket(created_at=record.timestamp)
                bucket.upsert(record, self.max_saves)
                doc.set(username, bucket)
                self._write_root(doc)
            except PersistenceError:
                logger.exception("Failed to save game for user %s", username)
                return False
        logger.debug("Saved chapter %s for user %s", record.chapter.filename, username)
        return True

    def bucket(self, username: str) -> Optional[UserSaveBucket]:
        with self._lock:
            return self._load_root().get(username)

    def latest(self, username: str) -> Optional[SaveRecord]:
        """Save for the furthest chapter reached (highest order), not the newest write."""
        bucket = self.bucket(username)
        return bucket.latest if bucket is not None else None

    def all(self, username: str) -> List[SaveRecord]:
        bucket = self.bucket(username)
        return list(bucket.saves) if bucket is not None else []

    def summary(self, username: str) -> Optional[SaveSummary]:
        bucket = self.bucket(username)
        if bucket is None:
            return None
        return SaveSummary.of(username, bucket)

    def users(self) -> List[str]:
        with self._lock:
            return list(self._load_root())

    def latest_backpack(self, username: str) -> BackpackData:
        """Newest saved inventory that actually holds items, else an empty one."""
        for save in reversed(self.all(username)):
            if not save.backpack_data.is_empty:
                return save.backpack_data
        return BackpackData()

    def replace_bucket(self, username: str, bucket: UserSaveBucket) -> bool:
        """Overwrite a user's whole bucket. Returns False on failure."""
        with self._lock:
            try:
                doc = self._read_root()
                doc.set(username, bucket)
                self._write_root(doc)
            except PersistenceError:
                logger.exception("Failed to replace saves for user %s", username)
                return False
        return True

    def delete(self, username: str) -> bool:
        """Remove one user's bucket, leaving every other user untouched."""
        with self._lock:
            try:
                doc = self._read_root()
                doc.remove(username)
                self._write_root(doc)
            except PersistenceError:
                logger.exception("Failed to delete saves for user %s", username)
                return False
        logger.info("Save data deleted for user: %s", username)
        return True

    def clear(self) -> None:
        """Drop every user's saves."""
        with self._lock:
            try:
                self.kv_store.remove_item(self.key)
            except PersistenceError:
                logger.exception("Failed to clear save data under %r", self.key)
                return
        logger.info("All save data cleared")
