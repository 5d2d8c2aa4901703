from __future__ import annotations

import argparse
import json
import time
import traceback
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from .commit import CommitResult, TableCommitter, group_entries
from .common import PrintLogger
from .config import CreateDisposition, LoadConfig, WriteDisposition, require_worker_reachable, validate_config
from .destinations import DynamicDestinations, destinations_from_config
from .endpoints.base import TableStore
from .endpoints.warehouse import SparkWarehouseStore
from .errors import PipelineFailed
from .events import Emitter, EventCategory, EventType, StructuredLogSubscriber, emit_log
from .jobs import LoadResult, TableLoader
from .model import DestinationKey, FileResult, LoadContext, Partition, PartitionTag, TempTableEntry
from .partitioning import FilePartitioner
from .sharding import write_dynamically_sharded_files, write_sharded_files
from .staging import Staging
from .state import DestinationPhase, DestinationTracker
from .tools.base import ExecutionTool
from .tools.spark import SparkTool
from .triggers import DefaultTrigger, PaneBuffer, commit_trigger, file_write_trigger, load_trigger
from .writers import write_empty_file


@dataclass
class WriteResult:
    """Outcome of a run.

    ``failed_inserts`` is always empty: a failed load fails the whole
    destination and the run raises instead of reporting rows.
    """

    context: LoadContext
    failed_inserts: Tuple[Any, ...] = ()
    loads: List[LoadResult] = field(default_factory=list)
    commits: List[CommitResult] = field(default_factory=list)
    panes: int = 0

    @property
    def temp_tables(self) -> List[str]:
        return [r.temp_table.temp_table for r in self.loads if r.temp_table is not None]

    @property
    def direct_loads(self) -> List[LoadResult]:
        return [r for r in self.loads if r.partition.tag is PartitionTag.DIRECT]


class BatchLoads:
    """Writes keyed rows to temp files and loads them into their destination tables.

    Input rows are ``(destination_key, row)`` pairs. Without a triggering
    frequency the whole input is one pane; with one, rows are released in panes
    and every pane is partitioned, loaded and committed on its own.
    """

    def __init__(
        self,
        config: LoadConfig,
        tool: ExecutionTool,
        store: TableStore,
        destinations: DynamicDestinations,
        logger: Optional[PrintLogger] = None,
        emitter: Optional[Emitter] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if tool.remote_workers:
            require_worker_reachable(config.temp_location)
        self.config = config
        self.tool = tool
        self.store = store
        self.destinations = destinations
        self.logger = logger or PrintLogger(job_name=config.job_name, file_path=config.log_file)
        self.emitter = emitter
        self.clock = clock
        self.sleep = sleep
        self.tracker = DestinationTracker(emitter)
        self.partitioner = FilePartitioner(
            max_files=config.max_files_per_partition,
            max_bytes=config.max_bytes_per_partition,
            singleton_table=config.singleton_table,
        )
        self._written_destinations: Set[DestinationKey] = set()
        self._rows_sharded = 0

    # ------------------------------------------------------------------ entry points
    def expand(self, rows: Iterable[Tuple[DestinationKey, Any]]) -> WriteResult:
        if self.config.triggered:
            return self.expand_triggered(rows)
        return self.expand_untriggered(rows)

    def expand_untriggered(self, rows: Iterable[Tuple[DestinationKey, Any]]) -> WriteResult:
        context = LoadContext.create(self.config.temp_location)
        self.logger = self.logger.bind(job_id_token=context.job_id_token)
        context_view = self.tool.broadcast(context)
        result = WriteResult(context=context)
        self._log("INFO", "batch_loads_start", mode="untriggered", **context.describe())
        data = self.tool.parallelize(rows, self.config.num_bundles)
        if self.config.num_file_shards == 0:
            written = write_dynamically_sharded_files(self.tool, data, context_view, self.config)
        else:
            written = write_sharded_files(self.tool, data, context_view, self.config)
        file_results = self.tool.materialize(written)
        self._load_pane(context, file_results, 0, result, DefaultTrigger())
        return self._finish(context, result)

    def expand_triggered(self, rows: Iterable[Tuple[DestinationKey, Any]]) -> WriteResult:
        context = LoadContext.create(self.config.temp_location)
        self.logger = self.logger.bind(job_id_token=context.job_id_token)
        context_view = self.tool.broadcast(context)
        result = WriteResult(context=context)
        self._log(
            "INFO",
            "batch_loads_start",
            mode="triggered",
            frequency=self.config.triggering_frequency,
            **context.describe(),
        )
        row_buffer: PaneBuffer = PaneBuffer(file_write_trigger(self.config), self.clock)
        file_buffer: PaneBuffer = PaneBuffer(load_trigger(self.config), self.clock)

        def _on_files(files: List[FileResult]) -> None:
            load_pane = file_buffer.extend(files) if files else file_buffer.poll()
            if load_pane is not None:
                self._publish_pane("load", load_pane)
                self._load_pane(context, load_pane.elements, load_pane.index, result, commit_trigger())

        for item in rows:
            pane = row_buffer.add(item)
            if pane is not None:
                self._publish_pane("write", pane)
                _on_files(self._write_pane(context_view, pane.elements))
            else:
                _on_files([])
        pane = row_buffer.flush()
        if pane is not None:
            self._publish_pane("write", pane)
            _on_files(self._write_pane(context_view, pane.elements))
        load_pane = file_buffer.flush()
        if load_pane is not None:
            self._publish_pane("load", load_pane)
            self._load_pane(context, load_pane.elements, load_pane.index, result, commit_trigger())
        elif result.panes == 0 and self.config.singleton_table:
            self._load_pane(context, [], 0, result, commit_trigger())
        return self._finish(context, result)

    # ------------------------------------------------------------------ stages
    def _write_pane(self, context_view, elements: List[Tuple[DestinationKey, Any]]) -> List[FileResult]:
        # shard numbering continues where the previous pane stopped
        start = self._rows_sharded
        self._rows_sharded += len(elements)
        data = self.tool.parallelize(elements, self.config.num_bundles)
        return self.tool.materialize(write_sharded_files(self.tool, data, context_view, self.config, start))

    def _dispositions(self, destination: DestinationKey) -> Tuple[WriteDisposition, CreateDisposition]:
        if destination in self._written_destinations:
            return WriteDisposition.WRITE_APPEND, self.config.create_disposition
        return self.config.write_disposition, self.config.create_disposition

    def _load_pane(
        self,
        context: LoadContext,
        file_results: List[FileResult],
        pane_index: int,
        result: WriteResult,
        commit_policy,
    ) -> None:
        result.panes += 1
        files_by_destination: Dict[DestinationKey, List[FileResult]] = {}
        for item in file_results:
            files_by_destination.setdefault(item.destination, []).append(item)
        partitions = self.partitioner.partition(
            file_results,
            pane_index=pane_index,
            default_destination=self.destinations.default_destination(),
            empty_file=lambda dest: write_empty_file(context.temp_file_prefix, dest),
        )
        for destination, parts in partitions.items():
            files = files_by_destination.get(destination, [])
            self.tracker.transition(
                destination,
                DestinationPhase.WRITING_FILES,
                pane=pane_index,
                files=len(files),
                bytes=sum(f.byte_size for f in files),
            )
            self.tracker.transition(destination, DestinationPhase.PARTITIONING, pane=pane_index, partitions=len(parts))
            phase = DestinationPhase.DIRECT_LOAD if parts[0].tag is PartitionTag.DIRECT else DestinationPhase.STAGED_LOAD
            self.tracker.transition(destination, phase, pane=pane_index)

        stage_args = (self.store, self.destinations, self.config, context, self.logger, self.emitter, self.sleep)
        loader = TableLoader(*stage_args)
        committer = TableCommitter(*stage_args)
        commit_buffer: PaneBuffer = PaneBuffer(commit_policy, self.clock)
        failures: List[Tuple[str, BaseException]] = []
        remaining = {dest: len(parts) for dest, parts in partitions.items()}
        loaded: Dict[DestinationKey, List[TempTableEntry]] = {dest: [] for dest in partitions}
        failed: Set[DestinationKey] = set()

        with ThreadPoolExecutor(max_workers=self.config.max_parallel_loads) as executor:
            futmap: Dict[Future, Partition] = {}
            for destination, parts in partitions.items():
                wd, cd = self._dispositions(destination)
                for part in parts:
                    futmap[executor.submit(loader.load, part, wd, cd)] = part
            for fut in as_completed(futmap):
                part = futmap[fut]
                destination = part.destination
                remaining[destination] -= 1
                try:
                    load_result = fut.result()
                    result.loads.append(load_result)
                    if load_result.temp_table is not None:
                        loaded[destination].append(load_result.temp_table)
                except Exception as exc:
                    self._fail(destination, exc, failures, failed, pane_index)
                if remaining[destination] > 0:
                    continue
                if destination in failed:
                    committer.discard(destination, loaded[destination])
                elif part.tag is PartitionTag.DIRECT:
                    self._written_destinations.add(destination)
                    self.tracker.transition(destination, DestinationPhase.DONE, pane=pane_index)
                else:
                    self.tracker.transition(destination, DestinationPhase.COMMIT, pane=pane_index)
                    commit_pane = commit_buffer.extend(loaded[destination])
                    if commit_pane is not None:
                        self._commit(committer, commit_pane.elements, result, failures, failed, pane_index)
        final_pane = commit_buffer.flush()
        if final_pane is not None:
            self._commit(committer, final_pane.elements, result, failures, failed, pane_index)
        if failures:
            for table, exc in failures:
                self._log("ERROR", "destination_failed", table=table, error=str(exc), error_type=type(exc).__name__)
            raise PipelineFailed(failures)

    def _commit(
        self,
        committer: TableCommitter,
        entries: List[TempTableEntry],
        result: WriteResult,
        failures: List[Tuple[str, BaseException]],
        failed: Set[DestinationKey],
        pane_index: int,
    ) -> None:
        for (destination, entry_pane), group in group_entries(entries).items():
            if destination in failed:
                committer.discard(destination, group)
                continue
            wd, cd = self._dispositions(destination)
            try:
                commit_result = committer.commit(destination, group, wd, cd, entry_pane)
            except Exception as exc:
                self._fail(destination, exc, failures, failed, pane_index)
                continue
            if commit_result is not None:
                result.commits.append(commit_result)
            self._written_destinations.add(destination)
            self.tracker.transition(destination, DestinationPhase.DONE, pane=pane_index)

    def _fail(
        self,
        destination: DestinationKey,
        exc: BaseException,
        failures: List[Tuple[str, BaseException]],
        failed: Set[DestinationKey],
        pane_index: int,
    ) -> None:
        try:
            table = self.destinations.get_table(destination).table_spec
        except Exception:
            table = str(destination)
        self._log(
            "ERROR",
            "destination_load_failed",
            table=table,
            error=str(exc),
            error_type=type(exc).__name__,
            stacktrace="".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        )
        if destination not in failed:
            failed.add(destination)
            failures.append((table, exc))
            self.tracker.transition(destination, DestinationPhase.FAILED, pane=pane_index, error=str(exc))

    def _finish(self, context: LoadContext, result: WriteResult) -> WriteResult:
        Staging.cleanup_prefix(context.temp_file_prefix, self.logger)
        self._log(
            "INFO",
            "batch_loads_end",
            panes=result.panes,
            loads=len(result.loads),
            temp_tables=len(result.temp_tables),
            commits=len(result.commits),
            destinations=self.tracker.snapshot(),
        )
        return result

    # ------------------------------------------------------------------ telemetry
    def _log(self, level: str, msg: str, **payload: Any) -> None:
        emit_log(self.emitter, level=level, msg=msg, logger=self.logger, **payload)

    def _publish_pane(self, stage: str, pane) -> None:
        if self.emitter is not None:
            self.emitter.publish(
                EventCategory.TRIGGER,
                EventType.PANE_FIRED,
                stage=stage,
                pane=pane.index,
                elements=len(pane.elements),
                reason=pane.reason,
            )


def main(
    tool: ExecutionTool,
    store: TableStore,
    destinations: DynamicDestinations,
    cfg: Dict[str, Any],
    rows: Iterable[Tuple[DestinationKey, Any]],
    base_logger: Optional[PrintLogger] = None,
) -> WriteResult:
    config = LoadConfig.from_dict(cfg)
    logger = base_logger or PrintLogger(job_name=config.job_name, file_path=config.log_file)
    emitter = Emitter()
    emitter.subscribe(StructuredLogSubscriber(logger))
    Staging.ttl_cleanup(config.temp_location, config.temp_ttl_hours, logger)
    return BatchLoads(config, tool, store, destinations, logger=logger, emitter=emitter).expand(rows)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--config", required=True)
    parser.add_argument("--input", required=True, help="Newline-delimited JSON rows to load")
    parser.add_argument("--table", help="Load every row into this table (overrides destination.table)", default=None)
    parser.add_argument(
        "--triggering-frequency",
        type=float,
        default=None,
        help="Seconds between load panes; requires load.num_file_shards > 0",
    )
    return parser.parse_args(argv)


def keyed_input(tool: SparkTool, path: str, cfg: Dict[str, Any]):
    """Read JSON rows and key them by destination."""
    dest_cfg = cfg.get("destination") or {}
    table = dest_cfg.get("table")
    key_field = dest_cfg.get("key_field")

    def _key(row) -> Tuple[DestinationKey, Dict[str, Any]]:
        values = row.asDict(recursive=True)
        return (table if table else values.get(key_field)), values

    return tool.spark.read.json(path).rdd.map(_key)


def run_cli(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    with open(args.config, "r", encoding="utf-8") as handle:
        cfg = json.load(handle)
    if args.table:
        cfg.setdefault("destination", {})["table"] = args.table
    if args.triggering_frequency is not None:
        cfg.setdefault("load", {})["triggering_frequency"] = args.triggering_frequency
    validate_config(cfg)
    destinations = destinations_from_config(cfg)
    load = cfg["load"]
    require_worker_reachable(load["temp_location"])
    logger = PrintLogger(job_name=load.get("job_name", "batch_loads"), file_path=load.get("log_file"))
    tool = SparkTool.from_config(cfg)
    store = SparkWarehouseStore(
        tool.spark,
        logger,
        max_workers=int(load.get("max_parallel_loads", 4)),
        table_format=cfg.get("runtime", {}).get("table_format", "parquet"),
    )
    try:
        rows = keyed_input(tool, args.input, cfg)
        if load.get("triggering_frequency") is not None:
            # panes are cut on the driver as rows arrive
            rows = rows.toLocalIterator()
        result = main(tool, store, destinations, cfg, rows, base_logger=logger)
        logger.info(
            "batch_loads_summary",
            loads=len(result.loads),
            direct=len(result.direct_loads),
            temp_tables=len(result.temp_tables),
            commits=len(result.commits),
            panes=result.panes,
        )
    finally:
        store.close()
        tool.stop()


__all__ = ["BatchLoads", "WriteResult", "main", "parse_args", "run_cli"]
