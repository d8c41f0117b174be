from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from .chapters import ChapterResolver, PageLocation
from .config import SaveConfig
from .events import EventBus
from .game_state import GameStateAdapter
from .models import SaveRecord, SaveSummary
from .notifications import ToastManager
from .orchestrator import LocationProvider, SaveOrchestrator
from .paths import default_store_path
from .restore import RestoreOrchestrator
from .scheduler import Clock, Scheduler
from .session import StoredUserProvider, UserProvider
from .storage import JSONFileKeyValueStore, KeyValueStore
from .store import SaveStore
from .transfer import SaveTransfer

logger = logging.getLogger(__name__)


class GameSaveService:
    """One save system instance for one page session.

    Owns the store, both orchestrators, the transfer helper and the timer
    queue. The host constructs it, calls ``start()`` once the page is ready,
    forwards lifecycle events through ``events`` and calls ``update()`` from
    its frame loop.

    Usage:
        service = GameSaveService(game_state=adapter)
        service.navigate("/game/part_1_1.html", title="苏醒")
        service.start()
        ...
        service.update()                         # every frame
        service.events.emit(PageHidden())        # tab switched away
        service.save_now({"checkpoint": "door"})
    """

    def __init__(
        self,
        kv_store: Optional[KeyValueStore] = None,
        *,
        config: Optional[SaveConfig] = None,
        game_state: Optional[GameStateAdapter] = None,
        user_provider: Optional[UserProvider] = None,
        location_provider: Optional[LocationProvider] = None,
        resolver: Optional[ChapterResolver] = None,
        clock: Optional[Clock] = None,
        events: Optional[EventBus] = None,
        notifier: Optional[ToastManager] = None,
    ) -> None:
        self.config = config or SaveConfig()
        data_dir = Path(self.config.data_dir) if self.config.data_dir else None
        self.kv_store = kv_store if kv_store is not None else JSONFileKeyValueStore(default_store_path(data_dir))
        self.scheduler = Scheduler(clock)
        self.events = events or EventBus()
        self.notifier = notifier or ToastManager(self.scheduler.clock)
        if resolver is None:
            resolver = ChapterResolver.from_file(self.config.chapters_file) if self.config.chapters_file else ChapterResolver()
        self.resolver = resolver
        self.user_provider: UserProvider = user_provider or StoredUserProvider(self.kv_store, self.config.user_key)
        self.location = PageLocation()
        self.store = SaveStore(self.kv_store, key=self.config.store_key, max_saves=self.config.max_saves)

        self.saver = SaveOrchestrator(
            self.store,
            self.resolver,
            location_provider or (lambda: self.location),
            self.user_provider,
            game_state=game_state,
            scheduler=self.scheduler,
            events=self.events,
            notifier=self.notifier,
            config=self.config,
        )
        self.restorer = RestoreOrchestrator(
            self.store,
            self.user_provider,
            game_state=game_state,
            scheduler=self.scheduler,
            config=self.config,
        )
        self.transfer = SaveTransfer(self.store, self.scheduler.clock)

    @classmethod
    def from_config_file(cls, path: Optional[Path] = None, **kwargs: Any) -> "GameSaveService":
        return cls(config=SaveConfig.load(path), **kwargs)

    @property
    def current_user(self) -> Optional[str]:
        return self.saver.current_user

    def _target_user(self, username: Optional[str]) -> Optional[str]:
        return username or self.saver.current_user

    # Lifecycle

    def navigate(self, url: str, title: str = "") -> None:
        """Point the session at a new page (path or full URL with query)."""
        self.location = PageLocation.from_url(url, title)

    def start(self) -> bool:
        """Initialize saving and schedule the restore of the latest save."""
        initialized = self.saver.init()
        if initialized:
            self.restorer.startup()
        return initialized

    def update(self) -> int:
        """Run due timers (auto-save, delayed restore). Call from the frame loop."""
        return self.scheduler.update()

    def shutdown(self) -> None:
        self.saver.shutdown()
        self.restorer.cancel_pending()

    # Programmatic surface

    def save_now(self, custom_data: Optional[Dict[str, Any]] = None) -> bool:
        result = self.saver.save_game(custom_data)
        if result:
            logger.info("Game data saved")
        else:
            logger.warning("Game data was not saved")
        return result

    def load_latest(self, username: Optional[str] = None) -> Optional[SaveRecord]:
        target = self._target_user(username)
        return self.store.latest(target) if target else None

    def get_all_saves(self, username: Optional[str] = None) -> List[SaveRecord]:
        target = self._target_user(username)
        return self.store.all(target) if target else []

    def get_info(self, username: Optional[str] = None) -> Optional[SaveSummary]:
        target = self._target_user(username)
        return self.store.summary(target) if target else None

    def export_save(self, username: Optional[str] = None) -> Optional[str]:
        target = self._target_user(username)
        return self.transfer.export_save(target) if target else None

    def import_save(self, text: str) -> bool:
        return self.transfer.import_save(text)

    def delete_save(self, username: Optional[str] = None) -> bool:
        target = self._target_user(username)
        return self.store.delete(target) if target else False

    def clear_all_saves(self) -> None:
        self.store.clear()

    def restore_latest_backpack(self) -> bool:
        return self.restorer.restore_latest_backpack()
