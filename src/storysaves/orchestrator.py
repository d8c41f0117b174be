from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from .chapters import ChapterResolver, PageLocation
from .config import SaveConfig
from .events import EventBus, GameSaved, PageHidden, PageUnloading, SaveFailed
from .game_state import GameStateAdapter
from .models import HOME_CHAPTER, BackpackData, SaveRecord
from .notifications import ToastManager
from .scheduler import Scheduler, TimerHandle
from .session import UserProvider
from .store import SaveStore

logger = logging.getLogger(__name__)

LocationProvider = Callable[[], PageLocation]


class SaveOrchestrator:
    """Decides when to save and builds the record for the current page.

    Saves are triggered by the auto-save timer, by the page going to the
    background or unloading, and manually. All triggers share one debounce
    window: a save requested within ``debounce_ms`` of the last successful
    save is dropped, not queued.

    Usage:
        saver = SaveOrchestrator(store, resolver, lambda: location, user_provider,
                                 game_state=adapter, scheduler=scheduler, events=bus)
        saver.init()          # starts auto-save, hooks page lifecycle events
        saver.save_game()     # manual save
        scheduler.update()    # from the host's frame loop
    """

    def __init__(
        self,
        store: SaveStore,
        resolver: ChapterResolver,
        location_provider: LocationProvider,
        user_provider: UserProvider,
        game_state: Optional[GameStateAdapter] = None,
        scheduler: Optional[Scheduler] = None,
        events: Optional[EventBus] = None,
        notifier: Optional[ToastManager] = None,
        config: Optional[SaveConfig] = None,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.location_provider = location_provider
        self.user_provider = user_provider
        self.game_state = game_state
        self.scheduler = scheduler or Scheduler()
        self.events = events
        self.notifier = notifier
        self.config = config or SaveConfig()

        self.current_user: Optional[str] = None
        self.last_save_time: Optional[int] = None
        self._auto_save_timer: Optional[TimerHandle] = None

    def init(self) -> bool:
        """Resolve the user, start auto-save and hook page lifecycle events."""
        self.current_user = self.user_provider()
        if not self.current_user:
            logger.warning("No current user found for save system")
            return False

        self.start_auto_save()

        if self.events is not None:
            self.events.subscribe(PageHidden, self._on_page_hidden)
            self.events.subscribe(PageUnloading, self._on_page_unloading)

        logger.info("Game save manager initialized for user: %s", self.current_user)
        return True

    def shutdown(self) -> None:
        self.stop_auto_save()
        if self.events is not None:
            self.events.unsubscribe(PageHidden, self._on_page_hidden)
            self.events.unsubscribe(PageUnloading, self._on_page_unloading)

    # Triggers

    def start_auto_save(self) -> None:
        if self._auto_save_timer is not None:
            self.scheduler.cancel(self._auto_save_timer)
        self._auto_save_timer = self.scheduler.call_every(self.config.autosave_interval_ms, self._auto_save)

    def stop_auto_save(self) -> None:
        if self._auto_save_timer is not None:
            self.scheduler.cancel(self._auto_save_timer)
            self._auto_save_timer = None

    @property
    def auto_save_running(self) -> bool:
        return self._auto_save_timer is not None

    def _auto_save(self) -> None:
        logger.debug("Auto-save triggered")
        self.save_game()

    def on_visibility_change(self, hidden: bool) -> bool:
        return self.save_game() if hidden else False

    def on_before_unload(self) -> bool:
        return self.save_game()

    def _on_page_hidden(self, event: PageHidden) -> None:
        self.on_visibility_change(event.hidden)

    def _on_page_unloading(self, event: PageUnloading) -> None:
        self.on_before_unload()

    # Saving

    def save_game(self, custom_data: Optional[Dict[str, Any]] = None) -> bool:
        """Save the current page for the current user.

        Returns False without touching the store when there is no user or
        when the previous save was less than ``debounce_ms`` ago. A game state
        adapter that raises, or a store that cannot be written, also yields
        False and a ``SaveFailed`` event; nothing propagates to the caller.
        """
        if not self.current_user:
            return False

        now = self.scheduler.now()
        if self.last_save_time is not None and now - self.last_save_time < self.config.debounce_ms:
            logger.debug("Save dropped: previous save %d ms ago", now - self.last_save_time)
            return False

        try:
            record = self.build_record(now, custom_data)
        except Exception:  # noqa: BLE001 host adapter errors must not reach the frame loop
            logger.exception("Failed to build save record for %s", self.current_user)
            if self.events is not None:
                self.events.emit(SaveFailed(self.current_user, HOME_CHAPTER, now))
            return False

        if not self.store.upsert(self.current_user, record):
            if self.events is not None:
                self.events.emit(SaveFailed(self.current_user, record.chapter, now))
            return False

        self.last_save_time = now
        if self.notifier is not None:
            self.notifier.show(self.config.notification_text, duration=self.config.notification_duration)
        if self.events is not None:
            self.events.emit(GameSaved(self.current_user, record.chapter, now))
        logger.info("Game saved: %s (%s) for %s", record.chapter.name, record.chapter.filename, self.current_user)
        return True

    def build_record(self, timestamp: int, custom_data: Optional[Dict[str, Any]] = None) -> SaveRecord:
        location = self.location_provider()
        return SaveRecord(
            timestamp=timestamp,
            chapter=self.resolver.resolve_location(location),
            player_data=self.game_state.read_player() if self.game_state is not None else None,
            backpack_data=self.extract_backpack_data(),
            game_flags=self.extract_game_flags(location),
            custom_data=dict(custom_data or {}),
        )

    def extract_backpack_data(self) -> BackpackData:
        backpack = self.game_state.read_backpack() if self.game_state is not None else None
        if backpack is None:
            return BackpackData(max_items=self.config.default_max_items)
        return backpack

    def extract_game_flags(self, location: PageLocation) -> Dict[str, str]:
        """URL query parameters, overridden by the game's own flags."""
        flags: Dict[str, str] = dict(location.query)
        if self.game_state is not None:
            game_flags = self.game_state.read_flags()
            if game_flags:
                flags.update(game_flags)
        return flags
