from __future__ import annotations

import random
from typing import Any, Dict, Iterable, Iterator, Tuple

from .config import SPILLED_RECORD_SHARDING_FACTOR, LoadConfig
from .model import DestinationKey, FileResult, ShardedKey
from .storage.filesystem import Filesystem
from .writers import RollingWriter, write_grouped_records

WRITTEN = "written"
SPILLED = "spilled"


class ShardAssigner:
    """Round-robin shard numbers starting from a random offset per bundle.

    The offset is drawn once per processing unit and never reset, so the spread
    over shards is near-uniform rather than exact. ``start`` advances the
    position for work that resumes after earlier rows, such as a later pane.
    """

    def __init__(self, num_shards: int, seed: int, bundle_index: int, start: int = 0) -> None:
        if num_shards <= 0:
            raise ValueError("num_shards must be > 0")
        self.num_shards = num_shards
        offset = random.Random(f"{seed}:{bundle_index}").randrange(num_shards)
        self._prev = (offset + start) % num_shards

    def next_shard(self) -> int:
        self._prev = (self._prev + 1) % self.num_shards
        return self._prev

    def assign(self, destination: DestinationKey) -> ShardedKey:
        return ShardedKey(destination, self.next_shard())

    def assign_bundle(self, rows: Iterable[Tuple[DestinationKey, Any]]) -> Iterator[Tuple[ShardedKey, Any]]:
        for destination, row in rows:
            yield self.assign(destination), row


def write_bundle_to_files(
    bundle_index: int,
    rows: Iterable[Tuple[DestinationKey, Any]],
    *,
    prefix: str,
    seed: int,
    max_writers: int,
    max_file_size: int,
) -> Iterator[Tuple[str, Any]]:
    """Write rows inline to at most ``max_writers`` open files.

    Yields ``(WRITTEN, FileResult)`` for closed files and ``(SPILLED, (ShardedKey, row))``
    for rows whose destination could not get a writer in this bundle.
    """
    fs = Filesystem.for_root(prefix)
    writers: Dict[DestinationKey, RollingWriter] = {}
    spill = ShardAssigner(SPILLED_RECORD_SHARDING_FACTOR, seed, bundle_index)
    try:
        for destination, row in rows:
            writer = writers.get(destination)
            if writer is None:
                if len(writers) >= max_writers:
                    yield SPILLED, (spill.assign(destination), row)
                    continue
                writer = RollingWriter(fs, prefix, destination, max_file_size)
                writers[destination] = writer
            writer.write(row)
    except Exception:
        for writer in writers.values():
            writer.abort()
        raise
    for writer in writers.values():
        for result in writer.close():
            yield WRITTEN, result


def _select(tag: str):
    def _fn(_bundle_index: int, items: Iterable[Tuple[str, Any]]) -> Iterator[Any]:
        for item_tag, value in items:
            if item_tag == tag:
                yield value

    return _fn


def write_sharded_records(tool, sharded, context_view, max_file_size: int):
    """Group rows by ShardedKey and write each group to its own files."""

    def _write_groups(_bundle_index: int, groups) -> Iterator[FileResult]:
        prefix = context_view.value.temp_file_prefix
        for key, rows in groups:
            for result in write_grouped_records(prefix, key.destination, rows, max_file_size):
                yield result

    grouped = tool.group_by_key(sharded)
    return tool.map_bundles(grouped, _write_groups)


def write_sharded_files(tool, data, context_view, config: LoadConfig, start: int = 0):
    """Static sharding: assign every row a shard, then group and write.

    ``start`` is the number of rows already sharded in earlier panes.
    """
    num_shards = config.num_file_shards

    def _add_shard(bundle_index: int, rows):
        assigner = ShardAssigner(num_shards, context_view.value.shard_seed, bundle_index, start)
        return assigner.assign_bundle(rows)

    sharded = tool.map_bundles(data, _add_shard)
    return write_sharded_records(tool, sharded, context_view, config.max_file_size)


def write_dynamically_sharded_files(tool, data, context_view, config: LoadConfig):
    """Dynamic sharding: inline writes per bundle, overflow goes through a grouped write."""
    max_writers = config.max_num_writers_per_bundle
    max_file_size = config.max_file_size

    def _write_bundle(bundle_index: int, rows):
        ctx = context_view.value
        return write_bundle_to_files(
            bundle_index,
            rows,
            prefix=ctx.temp_file_prefix,
            seed=ctx.shard_seed,
            max_writers=max_writers,
            max_file_size=max_file_size,
        )

    tagged = tool.persist(tool.map_bundles(data, _write_bundle))
    written = tool.map_bundles(tagged, _select(WRITTEN))
    spilled = tool.map_bundles(tagged, _select(SPILLED))
    written_grouped = write_sharded_records(tool, spilled, context_view, max_file_size)
    return tool.union(written, written_grouped)
