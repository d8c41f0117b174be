"""Export and import of one user's complete save bucket.

Export document (JSON):
{
  "saveInfo": {"username", "createdAt", "lastSaved", "currentChapter", "saveCount", "playTime"},
  "saves": [SaveRecord, ...],
  "exportedAt": epoch ms,
  "version": "1.0"
}

Import is all-or-nothing: the document is fully validated before the user's
bucket is overwritten.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ImportValidationError, SaveValidationError
from .models import ChapterDescriptor, SaveRecord, UserSaveBucket
from .scheduler import Clock, system_clock
from .store import SaveStore

logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0"


class SaveInfo(BaseModel):
    """Bucket summary carried in an export document."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(..., min_length=1, description="Owner of the exported saves")
    created_at: Optional[int] = Field(default=None, alias="createdAt")
    last_saved: Optional[int] = Field(default=None, alias="lastSaved")
    current_chapter: Optional[Dict[str, Any]] = Field(default=None, alias="currentChapter")
    save_count: int = Field(default=0, alias="saveCount")
    play_time: int = Field(default=0, alias="playTime")


class ExportDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    save_info: SaveInfo = Field(..., alias="saveInfo")
    saves: List[Dict[str, Any]] = Field(..., description="Full list of save records")
    exported_at: Optional[int] = Field(default=None, alias="exportedAt")
    version: str = Field(default=EXPORT_VERSION)

    def to_bucket(self) -> UserSaveBucket:
        try:
            records = [SaveRecord.from_dict(s) for s in self.saves]
            current = self.save_info.current_chapter
            chapter = ChapterDescriptor.from_dict(current) if current else None
        except SaveValidationError as e:
            raise ImportValidationError(f"Invalid save record: {e}") from e
        return UserSaveBucket(
            created_at=self.save_info.created_at or 0,
            last_saved=self.save_info.last_saved,
            current_chapter=chapter,
            saves=records,
        )


def migrate_document(data: Dict[str, Any], from_version: str, to_version: str = EXPORT_VERSION) -> Dict[str, Any]:
    """Bring an export document up to ``to_version``.

    Only "1.0" exists, so any other version is rejected.
    """
    if from_version == to_version:
        return data
    raise ImportValidationError(f"Unsupported save export version {from_version!r} (expected {to_version!r})")


def parse_export(text: str) -> ExportDocument:
    """Parse and validate an export document. Raises ImportValidationError."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise ImportValidationError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict) or "saveInfo" not in data or "saves" not in data:
        raise ImportValidationError("Invalid save data format")

    data = migrate_document(data, str(data.get("version") or EXPORT_VERSION))

    try:
        return ExportDocument.model_validate(data)
    except ValidationError as e:
        raise ImportValidationError(f"Invalid save data format: {e}") from e


class SaveTransfer:
    """Backup and migration of whole save buckets between stores."""

    def __init__(self, store: SaveStore, clock: Optional[Clock] = None) -> None:
        self.store = store
        self.clock: Clock = clock or system_clock

    def export_document(self, username: str) -> Optional[Dict[str, Any]]:
        summary = self.store.summary(username)
        if summary is None:
            return None
        return {
            "saveInfo": summary.to_dict(),
            "saves": [s.to_dict() for s in self.store.all(username)],
            "exportedAt": self.clock(),
            "version": EXPORT_VERSION,
        }

    def export_save(self, username: str) -> Optional[str]:
        """JSON text of the user's saves, or None if the user has none."""
        document = self.export_document(username)
        if document is None:
            return None
        return json.dumps(document, ensure_ascii=False, indent=2)

    def import_save(self, text: str) -> bool:
        """Replace the bucket of the user named in the document. Returns False if rejected."""
        try:
            document = parse_export(text)
            bucket = document.to_bucket()
        except ImportValidationError as e:
            logger.error("Failed to import save: %s", e)
            return False

        username = document.save_info.username
        if not self.store.replace_bucket(username, bucket):
            return False
        logger.info("Save data imported for user: %s", username)
        return True
