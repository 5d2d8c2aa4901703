"""Event bus tests ensuring subscriber wiring works without Spark."""

import unittest

from fakes import RecordingLogger

from batchload.events import Emitter, Event, EventCategory, EventType, StructuredLogSubscriber, Subscriber, emit_log


class JobOnly(Subscriber):
    def __init__(self):
        self.events = []

    def interests(self):
        return [EventCategory.JOB]

    def on_event(self, event):
        self.events.append(event)


class EventBusTest(unittest.TestCase):
    def test_category_filtering(self):
        bus = Emitter()
        jobs = JobOnly()
        bus.subscribe(jobs)
        bus.publish(EventCategory.JOB, EventType.LOAD_JOB, job_id="j1", status="success")
        bus.publish(EventCategory.DESTINATION, EventType.DESTINATION_PHASE, destination="t", phase="DONE")
        self.assertEqual([e.payload["job_id"] for e in jobs.events], ["j1"])
        bus.unsubscribe(jobs)
        bus.publish(EventCategory.JOB, EventType.LOAD_JOB, job_id="j2")
        self.assertEqual(len(jobs.events), 1)

    def test_structured_log_subscriber(self):
        logger = RecordingLogger()
        bus = Emitter()
        bus.subscribe(StructuredLogSubscriber(logger))
        bus.emit(
            Event(
                category=EventCategory.JOB,
                type=EventType.COPY_JOB,
                payload={"level": "ERROR", "table": "ds.orders", "job_id": "c-0", "status": "failed"},
            )
        )
        record = logger.records[-1]
        self.assertEqual(record["level"], "ERROR")
        self.assertEqual(record["event"], "job.copy")
        self.assertEqual(record["category"], "job")
        self.assertEqual(record["table"], "ds.orders")

    def test_emit_log_routes_through_bus_or_logger(self):
        logger = RecordingLogger()
        bus = Emitter()
        bus.subscribe(StructuredLogSubscriber(logger))
        emit_log(bus, level="info", msg="batch_loads_start", mode="untriggered")
        emit_log(None, level="WARN", msg="direct", logger=logger)
        self.assertEqual(logger.messages(), ["batch_loads_start", "direct"])
        self.assertEqual(logger.records[0]["level"], "INFO")
        self.assertEqual(logger.records[0]["mode"], "untriggered")

    def test_bound_fields_and_level_threshold(self):
        logger = RecordingLogger(level="WARN")
        bound = logger.bind(job_id_token="tok")
        bound.info("hidden")
        bound.error("load_failed", table="ds.t")
        self.assertEqual(logger.messages(), ["load_failed"])
        self.assertEqual(logger.records[0]["job_id_token"], "tok")
        self.assertEqual(logger.records[0]["table"], "ds.t")
        self.assertNotIn("job_id_token", logger.context)

    def test_debug_suppressed_unless_enabled(self):
        quiet = RecordingLogger()
        quiet.debug("hidden")
        verbose = RecordingLogger(level="DEBUG")
        verbose.debug("shown")
        self.assertEqual(quiet.records, [])
        self.assertEqual(verbose.messages(), ["shown"])


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
