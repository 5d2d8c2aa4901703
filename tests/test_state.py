"""Per-destination phase tracking."""

import unittest

from batchload.events import Emitter, EventCategory, Subscriber
from batchload.state import DestinationPhase, DestinationTracker, InvalidTransition


class PhaseCollector(Subscriber):
    def __init__(self):
        self.phases = []

    def interests(self):
        return [EventCategory.DESTINATION]

    def on_event(self, event):
        self.phases.append((event.payload["destination"], event.payload["phase"]))


class DestinationTrackerTest(unittest.TestCase):
    def setUp(self):
        self.emitter = Emitter()
        self.collector = PhaseCollector()
        self.emitter.subscribe(self.collector)
        self.tracker = DestinationTracker(self.emitter)

    def test_staged_path(self):
        for phase in (
            DestinationPhase.WRITING_FILES,
            DestinationPhase.PARTITIONING,
            DestinationPhase.STAGED_LOAD,
            DestinationPhase.COMMIT,
            DestinationPhase.DONE,
        ):
            self.tracker.transition("orders", phase)
        self.assertEqual(self.tracker.phase("orders"), DestinationPhase.DONE)
        self.assertEqual(self.tracker.panes_completed("orders"), 1)
        self.assertEqual([p for _, p in self.collector.phases][-1], "DONE")
        self.assertEqual(len(self.collector.phases), 5)

    def test_later_pane_restarts_from_done(self):
        for _ in range(2):
            self.tracker.transition("t", DestinationPhase.WRITING_FILES)
            self.tracker.transition("t", DestinationPhase.PARTITIONING)
            self.tracker.transition("t", DestinationPhase.DIRECT_LOAD)
            self.tracker.transition("t", DestinationPhase.DONE)
        self.assertEqual(self.tracker.panes_completed("t"), 2)

    def test_direct_load_cannot_commit(self):
        self.tracker.transition("t", DestinationPhase.WRITING_FILES)
        self.tracker.transition("t", DestinationPhase.PARTITIONING)
        self.tracker.transition("t", DestinationPhase.DIRECT_LOAD)
        with self.assertRaises(InvalidTransition):
            self.tracker.transition("t", DestinationPhase.COMMIT)

    def test_failed_is_terminal(self):
        self.tracker.transition("t", DestinationPhase.WRITING_FILES)
        self.tracker.transition("t", DestinationPhase.PARTITIONING)
        self.tracker.transition("t", DestinationPhase.STAGED_LOAD)
        self.tracker.transition("t", DestinationPhase.FAILED, error="boom")
        with self.assertRaises(InvalidTransition):
            self.tracker.transition("t", DestinationPhase.WRITING_FILES)
        self.assertEqual(self.tracker.snapshot(), {"t": "FAILED"})

    def test_must_start_with_writing_files(self):
        with self.assertRaises(InvalidTransition):
            DestinationTracker().transition("t", DestinationPhase.DONE)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
