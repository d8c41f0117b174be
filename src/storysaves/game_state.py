"""Narrow read/write contract between the save system and the host game.

The save system never touches game objects directly. The host page hands in a
GameStateAdapter; any part of the game that is missing on a page (no player
sprite, no backpack) simply reads as None and writes report False.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from .models import DEFAULT_MAX_ITEMS, BackpackData, PlayerData

logger = logging.getLogger(__name__)


class GameStateAdapter(ABC):
    @abstractmethod
    def read_player(self) -> Optional[PlayerData]:
        """Snapshot of the player, or None if this page has no player."""

    @abstractmethod
    def read_backpack(self) -> Optional[BackpackData]:
        """Snapshot of the inventory, or None if this page has no backpack."""

    @abstractmethod
    def read_flags(self) -> Optional[Mapping[str, str]]:
        """In-memory game flags, or None if the game keeps none."""

    @abstractmethod
    def write_player(self, data: PlayerData) -> bool:
        ...

    @abstractmethod
    def write_backpack(self, data: BackpackData) -> bool:
        ...

    @abstractmethod
    def merge_flags(self, flags: Mapping[str, str]) -> None:
        """Merge ``flags`` into the game's flags, creating them if absent."""

    def refresh_backpack_ui(self) -> None:
        """Redraw the inventory panel after a restore. Optional."""

    def refresh_backpack_button(self) -> None:
        """Redraw the inventory button badge after a restore. Optional."""


@dataclass
class PlayerState:
    """Mutable player sprite state as a simple page keeps it."""

    x: float = 0
    y: float = 0
    direction: str = "down"
    is_moving: bool = False
    walk_current_frame: int = 0
    stand_current_frame: int = 0

    def snapshot(self) -> PlayerData:
        return PlayerData(
            x=self.x,
            y=self.y,
            direction=self.direction,
            is_moving=self.is_moving,
            current_frame=self.walk_current_frame or self.stand_current_frame or 0,
        )

    def apply(self, data: PlayerData) -> None:
        self.x = data.x
        self.y = data.y
        if data.direction is not None:
            self.direction = data.direction
        self.is_moving = data.is_moving
        if data.is_moving:
            self.walk_current_frame = data.current_frame
        else:
            self.stand_current_frame = data.current_frame


@dataclass
class BackpackState:
    items: List[Any] = field(default_factory=list)
    max_items: int = DEFAULT_MAX_ITEMS
    has_new_item: bool = False

    def snapshot(self) -> BackpackData:
        return BackpackData(
            items=list(self.items),
            max_items=self.max_items or DEFAULT_MAX_ITEMS,
            has_new_item=bool(self.has_new_item),
        )

    def apply(self, data: BackpackData) -> None:
        self.items = list(data.items)
        self.max_items = data.max_items or DEFAULT_MAX_ITEMS
        self.has_new_item = bool(data.has_new_item)


class InMemoryGameState(GameStateAdapter):
    """Adapter over plain Python objects.

    Pass ``player=None`` or ``backpack=None`` for pages without them. The two
    refresh callbacks are optional and run after every backpack write.
    """

    def __init__(
        self,
        player: Optional[PlayerState] = None,
        backpack: Optional[BackpackState] = None,
        flags: Optional[Dict[str, str]] = None,
        on_backpack_ui_refresh: Optional[Callable[[], None]] = None,
        on_backpack_button_refresh: Optional[Callable[[], None]] = None,
    ) -> None:
        self.player = player
        self.backpack = backpack
        self.flags = flags
        self._on_backpack_ui_refresh = on_backpack_ui_refresh
        self._on_backpack_button_refresh = on_backpack_button_refresh

    def read_player(self) -> Optional[PlayerData]:
        return self.player.snapshot() if self.player is not None else None

    def read_backpack(self) -> Optional[BackpackData]:
        return self.backpack.snapshot() if self.backpack is not None else None

    def read_flags(self) -> Optional[Mapping[str, str]]:
        return dict(self.flags) if self.flags is not None else None

    def write_player(self, data: PlayerData) -> bool:
        if self.player is None:
            return False
        self.player.apply(data)
        return True

    def write_backpack(self, data: BackpackData) -> bool:
        if self.backpack is None:
            return False
        self.backpack.apply(data)
        logger.debug("Backpack restored: %d items", len(self.backpack.items))
        return True

    def merge_flags(self, flags: Mapping[str, str]) -> None:
        if self.flags is None:
            self.flags = dict(flags)
        else:
            self.flags.update(flags)

    def refresh_backpack_ui(self) -> None:
        if self._on_backpack_ui_refresh is not None:
            self._on_backpack_ui_refresh()

    def refresh_backpack_button(self) -> None:
        if self._on_backpack_button_refresh is not None:
            self._on_backpack_button_refresh()
