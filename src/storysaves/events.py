from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Type, TypeVar

from .models import ChapterDescriptor

T = TypeVar("T")


class EventBus:
    """Simple in-process event bus for page lifecycle and save events.

    Subscribers are keyed by event class; events are emitted by instance.
    Delivery is synchronous, on the caller's thread.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._subscribers: Dict[Type[Any], List[Callable[[Any], None]]] = {}

    def subscribe(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        with self._lock:
            handlers = self._subscribers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)  # type: ignore[arg-type]

    def unsubscribe(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        with self._lock:
            handlers = self._subscribers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    self._subscribers.pop(event_type, None)

    def subscriber_count(self, event_type: Type[Any]) -> int:
        with self._lock:
            return len(self._subscribers.get(event_type, []))

    def emit(self, event: Any) -> None:
        with self._lock:
            for event_type, handlers in list(self._subscribers.items()):
                if isinstance(event, event_type):
                    for h in list(handlers):
                        h(event)


@dataclass(frozen=True)
class PageHidden:
    """The page's visibility changed; ``hidden`` is True when it went to the background."""

    hidden: bool = True


@dataclass(frozen=True)
class PageUnloading:
    """The page is about to be closed or navigated away from."""


@dataclass(frozen=True)
class GameSaved:
    username: str
    chapter: ChapterDescriptor
    timestamp: int


@dataclass(frozen=True)
class SaveFailed:
    username: str
    chapter: ChapterDescriptor
    timestamp: int
