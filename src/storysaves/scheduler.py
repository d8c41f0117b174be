from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def system_clock() -> int:
    """Milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass
class TimerHandle:
    """A scheduled callback. ``interval`` is None for one-shot timers."""

    due: int
    callback: Callable[[], object]
    interval: Optional[int] = None
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler:
    """Cooperative timer queue driven by the host's frame loop.

    Nothing runs on its own: the host calls ``update()`` (typically once per
    frame) and every timer that has come due runs on that call, in due order.
    This keeps all save activity on one thread and makes it deterministic
    under a fake clock.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock: Clock = clock or system_clock
        self._timers: List[TimerHandle] = []

    def now(self) -> int:
        return self.clock()

    def call_later(self, delay_ms: int, callback: Callable[[], object]) -> TimerHandle:
        handle = TimerHandle(due=self.now() + max(0, int(delay_ms)), callback=callback)
        self._timers.append(handle)
        return handle

    def call_every(self, interval_ms: int, callback: Callable[[], object]) -> TimerHandle:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        handle = TimerHandle(due=self.now() + int(interval_ms), callback=callback, interval=int(interval_ms))
        self._timers.append(handle)
        return handle

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is None:
            return
        handle.cancel()
        if handle in self._timers:
            self._timers.remove(handle)

    @property
    def pending(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def update(self) -> int:
        """Run every timer that is due now. Returns how many callbacks ran.

        A repeating timer that fell several periods behind fires once and is
        rescheduled from the current time, like a browser interval.
        """
        now = self.now()
        ran = 0
        due = sorted((t for t in self._timers if not t.cancelled and t.due <= now), key=lambda t: t.due)
        for handle in due:
            if handle.cancelled:
                continue
            if handle.interval is None:
                self._timers.remove(handle)
            else:
                handle.due = now + handle.interval
            handle.callback()
            ran += 1
        self._timers = [t for t in self._timers if not t.cancelled]
        return ran
