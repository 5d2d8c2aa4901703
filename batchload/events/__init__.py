from .bus import Emitter
from .helpers import emit_job, emit_log
from .types import Event, EventCategory, EventType, Subscriber
from .subscribers import StructuredLogSubscriber

__all__ = [
    "Emitter",
    "Event",
    "EventCategory",
    "EventType",
    "Subscriber",
    "StructuredLogSubscriber",
    "emit_job",
    "emit_log",
]
