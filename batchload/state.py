from __future__ import annotations

import threading
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from .events import Emitter, EventCategory, EventType
from .model import DestinationKey


class DestinationPhase(str, Enum):
    WRITING_FILES = "WRITING_FILES"
    PARTITIONING = "PARTITIONING"
    DIRECT_LOAD = "DIRECT_LOAD"
    STAGED_LOAD = "STAGED_LOAD"
    COMMIT = "COMMIT"
    DONE = "DONE"
    FAILED = "FAILED"


_TRANSITIONS: Dict[Optional[DestinationPhase], FrozenSet[DestinationPhase]] = {
    None: frozenset({DestinationPhase.WRITING_FILES}),
    # a later trigger firing starts the next pane for the same destination
    DestinationPhase.DONE: frozenset({DestinationPhase.WRITING_FILES}),
    DestinationPhase.WRITING_FILES: frozenset({DestinationPhase.PARTITIONING}),
    DestinationPhase.PARTITIONING: frozenset(
        {DestinationPhase.DIRECT_LOAD, DestinationPhase.STAGED_LOAD, DestinationPhase.FAILED}
    ),
    DestinationPhase.DIRECT_LOAD: frozenset({DestinationPhase.DONE, DestinationPhase.FAILED}),
    DestinationPhase.STAGED_LOAD: frozenset({DestinationPhase.COMMIT, DestinationPhase.FAILED}),
    DestinationPhase.COMMIT: frozenset({DestinationPhase.DONE, DestinationPhase.FAILED}),
    DestinationPhase.FAILED: frozenset(),
}


class InvalidTransition(ValueError):
    pass


class DestinationTracker:
    """Tracks the phase of every destination and publishes each change."""

    def __init__(self, emitter: Optional[Emitter] = None) -> None:
        self.emitter = emitter
        self._phases: Dict[DestinationKey, DestinationPhase] = {}
        self._panes: Dict[DestinationKey, int] = {}
        self._lock = threading.Lock()

    def phase(self, destination: DestinationKey) -> Optional[DestinationPhase]:
        with self._lock:
            return self._phases.get(destination)

    def panes_completed(self, destination: DestinationKey) -> int:
        with self._lock:
            return self._panes.get(destination, 0)

    def transition(self, destination: DestinationKey, phase: DestinationPhase, **details: Any) -> None:
        with self._lock:
            current = self._phases.get(destination)
            if phase not in _TRANSITIONS[current]:
                raise InvalidTransition(
                    f"{destination}: cannot move from {current.value if current else 'START'} to {phase.value}"
                )
            self._phases[destination] = phase
            if phase == DestinationPhase.DONE:
                self._panes[destination] = self._panes.get(destination, 0) + 1
        if self.emitter is not None:
            self.emitter.publish(
                EventCategory.DESTINATION,
                EventType.DESTINATION_PHASE,
                level="ERROR" if phase == DestinationPhase.FAILED else "INFO",
                destination=str(destination),
                previous=current.value if current else None,
                phase=phase.value,
                **details,
            )

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return {str(k): v.value for k, v in self._phases.items()}
