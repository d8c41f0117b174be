"""Per-user chapter saves for a browser-style story game.

This package provides:
- A chapter resolver mapping page locations to ordered chapters
- A save store keeping one record per chapter per user in a key-value store
- Save and restore orchestrators driven by timers and page lifecycle events
- Export/import of a user's saves for backup and migration
"""

from importlib.metadata import PackageNotFoundError, version

from .chapters import ChapterResolver, PageLocation
from .config import SaveConfig
from .errors import ImportValidationError, PersistenceError, SaveError, SaveValidationError
from .events import EventBus, GameSaved, PageHidden, PageUnloading, SaveFailed
from .game_state import BackpackState, GameStateAdapter, InMemoryGameState, PlayerState
from .models import (
    MAX_SAVES,
    BackpackData,
    ChapterDescriptor,
    PlayerData,
    SaveRecord,
    SaveSummary,
    UserSaveBucket,
)
from .orchestrator import SaveOrchestrator
from .restore import RestoreOrchestrator
from .scheduler import Scheduler
from .service import GameSaveService
from .session import StoredUserProvider, static_user
from .storage import InMemoryKeyValueStore, JSONFileKeyValueStore, KeyValueStore
from .store import SaveStore
from .transfer import EXPORT_VERSION, SaveTransfer

try:
    __version__ = version("storysaves")
except PackageNotFoundError:  # pragma: no cover - during tests without packaging
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    "MAX_SAVES",
    "EXPORT_VERSION",
    "BackpackData",
    "BackpackState",
    "ChapterDescriptor",
    "ChapterResolver",
    "EventBus",
    "GameSaveService",
    "GameSaved",
    "GameStateAdapter",
    "ImportValidationError",
    "InMemoryGameState",
    "InMemoryKeyValueStore",
    "JSONFileKeyValueStore",
    "KeyValueStore",
    "PageHidden",
    "PageLocation",
    "PageUnloading",
    "PersistenceError",
    "PlayerData",
    "PlayerState",
    "RestoreOrchestrator",
    "SaveConfig",
    "SaveError",
    "SaveFailed",
    "SaveOrchestrator",
    "SaveRecord",
    "SaveStore",
    "SaveSummary",
    "SaveTransfer",
    "SaveValidationError",
    "Scheduler",
    "StoredUserProvider",
    "UserSaveBucket",
    "static_user",
]
