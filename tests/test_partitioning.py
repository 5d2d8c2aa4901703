"""Greedy packing of files into load-job sized partitions."""

import unittest

from batchload.model import FileResult, PartitionTag
from batchload.partitioning import FilePartitioner


def files(destination, count, size=1):
    return [FileResult(f"/tmp/{destination}/{i}", size, destination) for i in range(count)]


class FilePartitionerTest(unittest.TestCase):
    def test_each_small_destination_is_one_direct_partition(self):
        results = files("a", 10) + files("b", 3) + files("c", 9999)
        partitions = FilePartitioner().partition(results)
        self.assertEqual(set(partitions), {"a", "b", "c"})
        for parts in partitions.values():
            self.assertEqual(len(parts), 1)
            self.assertEqual(parts[0].tag, PartitionTag.DIRECT)
            self.assertEqual(parts[0].partition_index, 0)

    def test_file_count_overflow_goes_through_temp_tables(self):
        partitions = FilePartitioner().partition(files("big", 10050))["big"]
        self.assertEqual([len(p.files) for p in partitions], [10000, 50])
        self.assertEqual([p.partition_index for p in partitions], [0, 1])
        self.assertTrue(all(p.tag is PartitionTag.STAGED for p in partitions))

    def test_byte_limit(self):
        partitioner = FilePartitioner(max_bytes=10)
        parts = partitioner.partition_destination("d", files("d", 3, size=4))
        self.assertEqual([len(p.files) for p in parts], [2, 1])
        self.assertTrue(all(p.byte_size <= 10 for p in parts))

    def test_oversized_file_gets_its_own_partition(self):
        partitioner = FilePartitioner(max_bytes=10)
        results = [FileResult("/a", 3, "d"), FileResult("/b", 50, "d"), FileResult("/c", 3, "d")]
        parts = partitioner.partition_destination("d", results)
        self.assertEqual([p.filenames for p in parts], [("/a",), ("/b",), ("/c",)])

    def test_every_file_lands_in_exactly_one_partition(self):
        results = files("d", 57, size=3)
        parts = FilePartitioner(max_files=10, max_bytes=20).partition_destination("d", results)
        names = [name for p in parts for name in p.filenames]
        self.assertEqual(sorted(names), sorted(r.filename for r in results))
        self.assertTrue(all(len(p.files) <= 10 and p.byte_size <= 20 for p in parts))

    def test_singleton_table_always_staged(self):
        parts = FilePartitioner(singleton_table=True).partition(files("only", 2))["only"]
        self.assertEqual(len(parts), 1)
        self.assertEqual(parts[0].tag, PartitionTag.STAGED)

    def test_singleton_without_input_uses_empty_file(self):
        calls = []

        def empty_file(destination):
            calls.append(destination)
            return FileResult("/tmp/empty", 0, destination)

        partitions = FilePartitioner(singleton_table=True).partition(
            [], default_destination="ds.only", empty_file=empty_file
        )
        self.assertEqual(calls, ["ds.only"])
        self.assertEqual(partitions["ds.only"][0].filenames, ("/tmp/empty",))
        self.assertEqual(partitions["ds.only"][0].tag, PartitionTag.STAGED)

    def test_no_input_without_singleton_is_empty(self):
        self.assertEqual(FilePartitioner().partition([], default_destination="ds.t"), {})

    def test_pane_index_is_carried(self):
        parts = FilePartitioner().partition(files("d", 1), pane_index=3)["d"]
        self.assertEqual(parts[0].pane_index, 3)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
