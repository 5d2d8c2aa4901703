from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterable, List, Optional, Tuple, TypeVar, Union

from .config import LoadConfig

T = TypeVar("T")


@dataclass
class PaneState:
    count: int = 0
    first_element_at: Optional[float] = None


@dataclass(frozen=True)
class DefaultTrigger:
    """Fires once, when all input has arrived."""

    def fire_reason(self, pane: PaneState, now: float) -> Optional[str]:
        return None


@dataclass(frozen=True)
class AfterProcessingTime:
    """Fires once ``delay_seconds`` have passed since the first element of the pane."""

    delay_seconds: float

    def fire_reason(self, pane: PaneState, now: float) -> Optional[str]:
        if pane.first_element_at is not None and now - pane.first_element_at >= self.delay_seconds:
            return "time"
        return None


@dataclass(frozen=True)
class ElementCountAtLeast:
    count: int

    def fire_reason(self, pane: PaneState, now: float) -> Optional[str]:
        if pane.count >= self.count:
            return "count"
        return None


@dataclass(frozen=True)
class AfterFirst:
    """Fires as soon as any of its triggers would."""

    triggers: Tuple[Any, ...]

    def fire_reason(self, pane: PaneState, now: float) -> Optional[str]:
        for trigger in self.triggers:
            reason = trigger.fire_reason(pane, now)
            if reason:
                return reason
        return None


Trigger = Union[DefaultTrigger, AfterProcessingTime, ElementCountAtLeast, AfterFirst]


@dataclass
class Pane(Generic[T]):
    index: int
    elements: List[T]
    reason: str
    fired_at: float
    is_last: bool = False


class PaneBuffer(Generic[T]):
    """Buffers elements in one global window and releases them whenever the trigger fires.

    Fired panes are discarded from the buffer, so the trigger repeats for every
    new pane.
    """

    def __init__(self, trigger: Trigger, clock: Callable[[], float] = time.monotonic) -> None:
        self.trigger = trigger
        self.clock = clock
        self._elements: List[T] = []
        self._state = PaneState()
        self._next_index = 0

    @property
    def pending(self) -> int:
        return len(self._elements)

    def add(self, element: T) -> Optional[Pane[T]]:
        self._append(element)
        return self.poll()

    def extend(self, elements: Iterable[T]) -> Optional[Pane[T]]:
        for element in elements:
            self._append(element)
        return self.poll()

    def poll(self) -> Optional[Pane[T]]:
        if not self._elements:
            return None
        now = self.clock()
        reason = self.trigger.fire_reason(self._state, now)
        if reason is None:
            return None
        return self._fire(reason, now)

    def flush(self) -> Optional[Pane[T]]:
        """Release whatever is buffered, e.g. at the end of the input."""
        if not self._elements:
            return None
        pane = self._fire("final", self.clock())
        pane.is_last = True
        return pane

    def _append(self, element: T) -> None:
        if self._state.first_element_at is None:
            self._state.first_element_at = self.clock()
        self._elements.append(element)
        self._state.count += 1

    def _fire(self, reason: str, now: float) -> Pane[T]:
        pane = Pane(index=self._next_index, elements=self._elements, reason=reason, fired_at=now)
        self._next_index += 1
        self._elements = []
        self._state = PaneState()
        return pane


# ---------------------------------------------------------------------------
# Policies for the two control paths
# ---------------------------------------------------------------------------
def file_write_trigger(config: LoadConfig) -> Trigger:
    """Write files on the user frequency, or sooner once enough records are buffered."""
    if not config.triggered:
        return DefaultTrigger()
    return AfterFirst(
        (
            AfterProcessingTime(float(config.triggering_frequency)),
            ElementCountAtLeast(config.file_triggering_record_count),
        )
    )


def load_trigger(config: LoadConfig) -> Trigger:
    if not config.triggered:
        return DefaultTrigger()
    return AfterProcessingTime(float(config.triggering_frequency))


def commit_trigger() -> Trigger:
    """Commit as soon as any loaded temp table is available."""
    return ElementCountAtLeast(1)
