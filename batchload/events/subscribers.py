from __future__ import annotations

from typing import Iterable

from batchload.common import PrintLogger

from .types import Event, EventCategory, EventType, Subscriber


class StructuredLogSubscriber(Subscriber):
    """Writes every event as one structured line through the PrintLogger."""

    def __init__(self, logger: PrintLogger, *, emit_structured: bool = True) -> None:
        self.logger = logger
        self.emit_structured = emit_structured

    def interests(self) -> Iterable[EventCategory]:
        return []

    def on_event(self, event: Event) -> None:
        payload = dict(event.payload)
        level = str(payload.pop("level", "INFO") or "INFO")
        if event.type == EventType.LOG:
            msg = str(payload.pop("msg", "log"))
            self.logger.log(level, msg, **payload)
            return
        record = {
            "event_ts": event.timestamp.astimezone().isoformat(timespec="milliseconds"),
            "category": event.category.value,
            **payload,
        }
        if self.emit_structured:
            self.logger.event(event.type.value, level=level, **record)
        else:
            self.logger.log(level, event.type.value, **record)
