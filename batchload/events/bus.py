from __future__ import annotations

from threading import RLock
from typing import Any, List

from .types import Event, EventCategory, EventType, Subscriber


class Emitter:
    """Thread-safe event emitter supporting category filtering."""

    def __init__(self) -> None:
        self._subscribers: List[Subscriber] = []
        self._lock = RLock()

    def subscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        with self._lock:
            self._subscribers = [s for s in self._subscribers if s is not subscriber]

    def emit(self, event: Event) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for sub in subscribers:
            interests = tuple(sub.interests())
            if not interests or event.category in interests:
                sub.on_event(event)

    def publish(self, category: EventCategory, type_: EventType, **payload: Any) -> None:
        self.emit(Event(category=category, type=type_, payload=payload))
