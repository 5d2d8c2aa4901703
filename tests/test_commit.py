"""Copying temp tables into their final table."""

import unittest

from fakes import InMemoryTableStore, RecordingLogger, failed

from batchload.commit import TableCommitter, group_entries
from batchload.config import CreateDisposition, LoadConfig, WriteDisposition
from batchload.destinations import FormattedTableDestinations
from batchload.errors import CommitFailure
from batchload.jobs import copy_job_id
from batchload.model import LoadContext, TableDestination, TempTableEntry


class TableCommitterTest(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryTableStore()
        self.store.tables["ds.tmp_1"] = [{"id": 1}]
        self.store.tables["ds.tmp_0"] = [{"id": 0}]
        self.destinations = FormattedTableDestinations("ds.events_{}")
        self.context = LoadContext("tok", "/tmp/BatchLoadsTemp/tok", 1)
        self.logger = RecordingLogger()
        self.entries = [
            TempTableEntry("a", "ds.events_a", "ds.tmp_1"),
            TempTableEntry("a", "ds.events_a", "ds.tmp_0"),
            TempTableEntry("a", "ds.events_a", "ds.tmp_1"),
        ]

    def _committer(self, **overrides):
        config = LoadConfig(temp_location="/tmp", **overrides)
        return TableCommitter(self.store, self.destinations, config, self.context, self.logger, sleep=lambda s: None)

    def test_single_copy_job_of_all_temp_tables(self):
        result = self._committer(write_disposition=WriteDisposition.WRITE_APPEND).commit("a", self.entries)
        self.assertEqual(result.job_id, copy_job_id("tok", TableDestination("ds.events_a"), 0))
        self.assertEqual(result.temp_tables, ("ds.tmp_0", "ds.tmp_1"))
        job = self.store.jobs[result.job_id]
        self.assertEqual(job["kind"], "copy")
        self.assertEqual(job["sources"], ("ds.tmp_0", "ds.tmp_1"))
        self.assertEqual(job["write_disposition"], WriteDisposition.WRITE_APPEND)
        self.assertEqual(self.store.tables["ds.events_a"], [{"id": 0}, {"id": 1}])
        self.assertEqual(sorted(self.store.deleted), ["ds.tmp_0", "ds.tmp_1"])

    def test_redelivered_commit_reuses_copy_job(self):
        committer = self._committer(write_disposition=WriteDisposition.WRITE_APPEND)
        first = committer.commit("a", self.entries)
        # an earlier attempt dropped tmp_0 but not tmp_1
        self.store.tables["ds.tmp_1"] = [{"id": 1}]
        second = committer.commit("a", [TempTableEntry("a", "ds.events_a", "ds.tmp_1")])
        self.assertEqual(second.job_id, first.job_id)
        self.assertEqual(self.store.tables["ds.events_a"], [{"id": 0}, {"id": 1}])
        self.assertEqual(len(self.store.jobs_for("ds.events_a", "copy")), 1)
        self.assertEqual(self.store.submissions.count(first.job_id), 2)
        self.assertNotIn("ds.tmp_1", self.store.tables)

    def test_truncate_replaces_existing_rows(self):
        self.store.tables["ds.events_a"] = [{"id": "old"}]
        self._committer(write_disposition=WriteDisposition.WRITE_TRUNCATE).commit("a", self.entries)
        self.assertEqual(len(self.store.tables["ds.events_a"]), 2)

    def test_write_empty_on_populated_table_fails_and_keeps_temp_tables(self):
        self.store.tables["ds.events_a"] = [{"id": "old"}]
        with self.assertRaises(CommitFailure) as ctx:
            self._committer().commit("a", self.entries, WriteDisposition.WRITE_EMPTY, CreateDisposition.CREATE_IF_NEEDED)
        self.assertEqual(ctx.exception.table, "ds.events_a")
        self.assertEqual(self.store.deleted, [])
        self.assertIn("ds.tmp_0", self.store.tables)

    def test_transient_copy_failure_retries(self):
        self.store.failures["ds.events_a"] = [failed("backendError"), failed("rateLimitExceeded")]
        result = self._committer().commit("a", self.entries)
        self.assertEqual(result.job_id, copy_job_id("tok", TableDestination("ds.events_a"), 2))

    def test_nothing_to_commit(self):
        self.assertIsNone(self._committer().commit("a", []))
        self.assertEqual(self.store.jobs, {})

    def test_temp_table_delete_failure_is_logged(self):
        def broken(table):
            raise RuntimeError("catalog unavailable")

        self.store.delete_table = broken
        result = self._committer().commit("a", self.entries)
        self.assertIsNotNone(result)
        self.assertEqual(self.logger.messages().count("temp_table_delete_failed"), 2)

    def test_discard_drops_temp_tables(self):
        self._committer().discard("a", self.entries)
        self.assertEqual(sorted(self.store.deleted), ["ds.tmp_0", "ds.tmp_1"])
        self.assertEqual(self.store.jobs, {})

    def test_group_entries_by_destination_and_pane(self):
        entries = self.entries + [TempTableEntry("b", "ds.events_b", "ds.tmp_b", pane_index=1)]
        grouped = group_entries(entries)
        self.assertEqual(set(grouped), {("a", 0), ("b", 1)})
        self.assertEqual(len(grouped[("a", 0)]), 3)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
