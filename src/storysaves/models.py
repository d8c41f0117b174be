from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import SaveValidationError

# Upper bound on the number of chapter saves kept per user
MAX_SAVES = 20

DEFAULT_MAX_ITEMS = 16

HOME_FILENAME = "index.html"
HOME_ORDER = -1
UNKNOWN_ORDER = 999


def _require_int(value: Any, what: str) -> int:
    # bool is an int subclass but never a valid order or timestamp
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SaveValidationError(f"{what} must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise SaveValidationError(f"{what} must be finite")
    return int(value)


@dataclass(frozen=True)
class ChapterDescriptor:
    """A chapter (one page of the story) as seen by the save system.

    ``filename`` identifies the chapter; ``order`` is only used for sorting.
    """

    name: str
    order: int
    filename: str

    def __post_init__(self) -> None:
        if not isinstance(self.filename, str):
            raise SaveValidationError("ChapterDescriptor.filename must be a string")
        if not isinstance(self.name, str):
            raise SaveValidationError("ChapterDescriptor.name must be a string")

    @property
    def is_home(self) -> bool:
        return self.order == HOME_ORDER

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "order": self.order, "filename": self.filename}

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ChapterDescriptor":
        if not isinstance(data, dict):
            raise SaveValidationError("chapter must be an object")
        return ChapterDescriptor(
            name=str(data.get("name", "")),
            order=_require_int(data.get("order", UNKNOWN_ORDER), "chapter.order"),
            filename=str(data.get("filename", "")),
        )


HOME_CHAPTER = ChapterDescriptor(name="主页", order=HOME_ORDER, filename=HOME_FILENAME)


@dataclass(frozen=True)
class PlayerData:
    """Snapshot of the player sprite: position, facing and animation frame."""

    x: float = 0
    y: float = 0
    direction: Optional[str] = None
    is_moving: bool = False
    current_frame: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "direction": self.direction,
            "isMoving": self.is_moving,
            "currentFrame": self.current_frame,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "PlayerData":
        if not isinstance(data, dict):
            raise SaveValidationError("playerData must be an object or null")
        return PlayerData(
            x=data.get("x", 0),
            y=data.get("y", 0),
            direction=data.get("direction"),
            is_moving=bool(data.get("isMoving", False)),
            current_frame=data.get("currentFrame") or 0,
        )


@dataclass(frozen=True)
class BackpackData:
    """Inventory contents. Items are opaque JSON values owned by the game."""

    items: List[Any] = field(default_factory=list)
    max_items: int = DEFAULT_MAX_ITEMS
    has_new_item: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.items

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": list(self.items),
            "maxItems": self.max_items,
            "hasNewItem": self.has_new_item,
        }

    @staticmethod
    def from_dict(data: Optional[Dict[str, Any]]) -> "BackpackData":
        if data is None:
            return BackpackData()
        if not isinstance(data, dict):
            raise SaveValidationError("backpackData must be an object")
        items = data.get("items") or []
        if not isinstance(items, list):
            raise SaveValidationError("backpackData.items must be a list")
        return BackpackData(
            items=list(items),
            max_items=data.get("maxItems") or DEFAULT_MAX_ITEMS,
            has_new_item=bool(data.get("hasNewItem", False)),
        )


@dataclass(frozen=True)
class SaveRecord:
    """Progress snapshot for exactly one chapter."""

    timestamp: int
    chapter: ChapterDescriptor
    player_data: Optional[PlayerData] = None
    backpack_data: BackpackData = field(default_factory=BackpackData)
    game_flags: Dict[str, str] = field(default_factory=dict)
    custom_data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "chapter": self.chapter.to_dict(),
            "playerData": self.player_data.to_dict() if self.player_data is not None else None,
            "backpackData": self.backpack_data.to_dict(),
            "gameFlags": dict(self.game_flags),
            "customData": dict(self.custom_data),
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "SaveRecord":
        if not isinstance(data, dict):
            raise SaveValidationError("save record must be an object")
        if "chapter" not in data:
            raise SaveValidationError("save record is missing 'chapter'")
        player = data.get("playerData")
        flags = data.get("gameFlags") or {}
        custom = data.get("customData") or {}
        if not isinstance(flags, dict) or not isinstance(custom, dict):
            raise SaveValidationError("gameFlags and customData must be objects")
        return SaveRecord(
            timestamp=_require_int(data.get("timestamp", 0), "timestamp"),
            chapter=ChapterDescriptor.from_dict(data["chapter"]),
            player_data=PlayerData.from_dict(player) if player is not None else None,
            backpack_data=BackpackData.from_dict(data.get("backpackData")),
            game_flags=dict(flags),
            custom_data=dict(custom),
        )


@dataclass
class UserSaveBucket:
    """All saves and bookkeeping for one user.

    ``saves`` holds at most one record per chapter filename, sorted by
    chapter order.
    """

    created_at: int
    last_saved: Optional[int] = None
    current_chapter: Optional[ChapterDescriptor] = None
    saves: List[SaveRecord] = field(default_factory=list)

    def find_index(self, filename: str) -> int:
        for i, save in enumerate(self.saves):
            if save.chapter.filename == filename:
                return i
        return -1

    def upsert(self, record: SaveRecord, max_saves: int = MAX_SAVES) -> None:
        """Insert or replace the record for ``record.chapter.filename``.

        Replacing keeps the slot where it is. Inserting re-sorts by chapter
        order and then drops entries from the front beyond ``max_saves``.
        """
        index = self.find_index(record.chapter.filename)
        if index >= 0:
            self.saves[index] = record
        else:
            self.saves.append(record)
            self.saves.sort(key=lambda s: s.chapter.order)
            if len(self.saves) > max_saves:
                del self.saves[: len(self.saves) - max_saves]
        self.last_saved = record.timestamp
        self.current_chapter = record.chapter

    @property
    def latest(self) -> Optional[SaveRecord]:
        return self.saves[-1] if self.saves else None

    def play_time(self) -> int:
        """Milliseconds between the first kept save and the last save."""
        if not self.saves:
            return 0
        first = self.saves[0].timestamp
        last = self.last_saved or self.saves[-1].timestamp
        return last - first

    def to_dict(self) -> Dict[str, Any]:
        return {
            "createdAt": self.created_at,
            "lastSaved": self.last_saved,
            "currentChapter": self.current_chapter.to_dict() if self.current_chapter else None,
            "saves": [s.to_dict() for s in self.saves],
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "UserSaveBucket":
        if not isinstance(data, dict):
            raise SaveValidationError("user bucket must be an object")
        saves = data.get("saves") or []
        if not isinstance(saves, list):
            raise SaveValidationError("user bucket 'saves' must be a list")
        current = data.get("currentChapter")
        last_saved = data.get("lastSaved")
        return UserSaveBucket(
            created_at=_require_int(data.get("createdAt") or 0, "createdAt"),
            last_saved=_require_int(last_saved, "lastSaved") if last_saved is not None else None,
            current_chapter=ChapterDescriptor.from_dict(current) if current else None,
            saves=[SaveRecord.from_dict(s) for s in saves],
        )


@dataclass(frozen=True)
class SaveSummary:
    """Bucket metadata shown in menus and written into export documents."""

    username: str
    created_at: Optional[int]
    last_saved: Optional[int]
    current_chapter: Optional[ChapterDescriptor]
    save_count: int
    play_time: int

    @staticmethod
    def of(username: str, bucket: UserSaveBucket) -> "SaveSummary":
        return SaveSummary(
            username=username,
            created_at=bucket.created_at,
            last_saved=bucket.last_saved,
            current_chapter=bucket.current_chapter,
            save_count=len(bucket.saves),
            play_time=bucket.play_time(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "createdAt": self.created_at,
            "lastSaved": self.last_saved,
            "currentChapter": self.current_chapter.to_dict() if self.current_chapter else None,
            "saveCount": self.save_count,
            "playTime": self.play_time,
        }
