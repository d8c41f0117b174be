from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .scheduler import Clock, system_clock


@dataclass(frozen=True)
class ToastMessage:
    """A transient, auto-dismissing UI notification.

    This model is UI-framework agnostic; the rendering layer polls the
    ToastManager for messages to display.
    """

    text: str
    shown_at: int
    duration: float = 3.0  # seconds on screen
    level: str = "info"  # info | warning | error | success

    @property
    def expires_at(self) -> int:
        return self.shown_at + int(self.duration * 1000)

    def is_visible(self, now: int) -> bool:
        return self.shown_at <= now < self.expires_at


class ToastManager:
    """Queue of toasts for the UI layer.

    The renderer can drain() new messages or ask for what is visible at a
    given time; messages dismiss themselves once their duration elapses.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock: Clock = clock or system_clock
        self._queue: List[ToastMessage] = []
        self._shown: List[ToastMessage] = []

    def show(self, text: str, duration: float = 3.0, level: str = "info") -> ToastMessage:
        msg = ToastMessage(text=text, shown_at=self.clock(), duration=duration, level=level)
        self._queue.append(msg)
        self._shown.append(msg)
        return msg

    def drain(self) -> List[ToastMessage]:
        items = list(self._queue)
        self._queue.clear()
        return items

    def visible(self) -> List[ToastMessage]:
        now = self.clock()
        self._shown = [m for m in self._shown if now < m.expires_at]
        return [m for m in self._shown if m.is_visible(now)]

    @property
    def last_message(self) -> Optional[ToastMessage]:
        return self._shown[-1] if self._shown else None
