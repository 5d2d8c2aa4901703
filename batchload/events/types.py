from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable


class EventCategory(str, Enum):
    DESTINATION = "destination"
    JOB = "job"
    TRIGGER = "trigger"
    LOG = "log"


class EventType(str, Enum):
    DESTINATION_PHASE = "destination.phase"
    LOAD_JOB = "job.load"
    COPY_JOB = "job.copy"
    TEMP_TABLE_DELETED = "job.temp_table_deleted"
    PANE_FIRED = "trigger.pane"
    LOG = "log"


@dataclass
class Event:
    category: EventCategory
    type: EventType
    payload: Dict[str, Any]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Subscriber:
    """Base subscriber; override interests and on_event."""

    def interests(self) -> Iterable[EventCategory]:
        return []

    def on_event(self, event: Event) -> None:
        raise NotImplementedError
