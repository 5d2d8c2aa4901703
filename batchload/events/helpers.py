from __future__ import annotations

from typing import Any

from .types import Event, EventCategory, EventType


def emit_log(
    emitter,
    *,
    level: str,
    msg: str,
    logger=None,
    **payload: Any,
) -> None:
    """Route a log line through the bus when there is one, else straight to the logger."""
    record = {"level": level.upper(), "msg": msg, **payload}
    if emitter is not None:
        emitter.emit(Event(category=EventCategory.LOG, type=EventType.LOG, payload=record))
    elif logger is not None:
        logger.log(level.upper(), msg, **payload)


def emit_job(emitter, type_: EventType, *, destination: Any, status: str, **payload: Any) -> None:
    """Publish the outcome of a load or copy job; failures are logged at ERROR."""
    if emitter is None:
        return
    emitter.publish(
        EventCategory.JOB,
        type_,
        level="ERROR" if status == "failed" else "INFO",
        destination=str(destination),
        status=status,
        **payload,
    )
