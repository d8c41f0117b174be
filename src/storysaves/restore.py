from __future__ import annotations

import logging
from typing import Optional

from .config import SaveConfig
from .game_state import GameStateAdapter
from .models import BackpackData, SaveRecord
from .scheduler import Scheduler, TimerHandle
from .session import UserProvider
from .store import SaveStore

logger = logging.getLogger(__name__)


class RestoreOrchestrator:
    """Writes saved progress back into the running game."""

    def __init__(
        self,
        store: SaveStore,
        user_provider: UserProvider,
        game_state: Optional[GameStateAdapter] = None,
        scheduler: Optional[Scheduler] = None,
        config: Optional[SaveConfig] = None,
    ) -> None:
        self.store = store
        self.user_provider = user_provider
        self.game_state = game_state
        self.scheduler = scheduler or Scheduler()
        self.config = config or SaveConfig()
        self._pending: Optional[TimerHandle] = None

    def startup(self) -> bool:
        """Schedule the latest save to be applied once the page has settled.

        Returns True when a restore was scheduled. No user or no save is not
        an error; nothing happens.
        """
        username = self.user_provider()
        if not username:
            logger.info("No current user; skipping restore")
            return False
        record = self.store.latest(username)
        if record is None:
            logger.info("No saves for user %s; starting fresh", username)
            return False

        self.cancel_pending()
        self._pending = self.scheduler.call_later(self.config.restore_delay_ms, lambda: self._apply_pending(record))
        logger.info("Restoring %s for %s in %d ms", record.chapter.filename, username, self.config.restore_delay_ms)
        return True

    def cancel_pending(self) -> None:
        if self._pending is not None:
            self.scheduler.cancel(self._pending)
            self._pending = None

    @property
    def restore_pending(self) -> bool:
        return self._pending is not None

    def _apply_pending(self, record: SaveRecord) -> None:
        self._pending = None
        self.apply_loaded_data(record)

    def apply_loaded_data(self, record: Optional[SaveRecord]) -> bool:
        if record is None:
            return False
        if self.game_state is None:
            logger.debug("No game state adapter; nothing to restore into")
            return False
        try:
            if record.player_data is not None:
                self.game_state.write_player(record.player_data)
            if self.game_state.write_backpack(record.backpack_data):
                self._refresh_backpack_views()
            if record.game_flags:
                self.game_state.merge_flags(record.game_flags)
        except Exception:  # noqa: BLE001 host adapter errors must not break the page
            logger.exception("Failed to apply loaded data")
            return False
        logger.info("Loaded data applied to game")
        return True

    def restore_backpack_data(self, backpack: Optional[BackpackData]) -> bool:
        if backpack is None or self.game_state is None:
            return False
        try:
            if not self.game_state.write_backpack(backpack):
                return False
            self._refresh_backpack_views()
        except Exception:  # noqa: BLE001
            logger.exception("Failed to restore backpack data")
            return False
        return True

    def latest_backpack(self) -> BackpackData:
        username = self.user_provider()
        if not username:
            return BackpackData(max_items=self.config.default_max_items)
        return self.store.latest_backpack(username)

    def restore_latest_backpack(self) -> bool:
        """Carry the inventory over from earlier chapters without moving the player.

        Uses the newest save whose inventory is not empty. The "new item"
        badge is cleared since nothing was picked up on this page.
        """
        if not self.user_provider():
            logger.info("Save system has no logged-in user; backpack not restored")
            return False
        latest = self.latest_backpack()
        if latest.is_empty:
            logger.info("No saved backpack to restore")
            return False
        if self.game_state is None:
            logger.warning("No game state adapter; cannot restore backpack")
            return False
        restored = BackpackData(
            items=list(latest.items),
            max_items=latest.max_items or self.config.default_max_items,
            has_new_item=False,
        )
        if not self.restore_backpack_data(restored):
            logger.warning("This page has no backpack; saved items not restored")
            return False
        logger.info("Backpack restored with %d items", len(restored.items))
        return True

    def _refresh_backpack_views(self) -> None:
        assert self.game_state is not None
        self.game_state.refresh_backpack_ui()
        self.game_state.refresh_backpack_button()
