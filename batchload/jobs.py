from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Tuple

from .common import PrintLogger
from .config import CreateDisposition, LoadConfig, WriteDisposition
from .destinations import DynamicDestinations
from .endpoints.base import JobHandle, TableStore
from .errors import LoadJobPermanentFailure, LoadJobTransientFailure
from .events import Emitter, EventType, emit_job
from .model import JobState, JobStatus, LoadContext, Partition, PartitionTag, TableDestination, TempTableEntry
from .storage.filesystem import Filesystem


# ---------------------------------------------------------------------------
# Deterministic identifiers
# ---------------------------------------------------------------------------
def job_id_prefix(token: str, table: TableDestination, partition_index: int, pane_index: int = 0) -> str:
    return f"{token}_{table.digest()}_{partition_index:05d}_{pane_index:05d}"


def load_job_id(
    token: str,
    table: TableDestination,
    partition_index: int,
    retry_index: int,
    pane_index: int = 0,
) -> str:
    return f"{job_id_prefix(token, table, partition_index, pane_index)}-{retry_index}"


def copy_job_id(token: str, table: TableDestination, retry_index: int, pane_index: int = 0) -> str:
    return f"{token}_{table.digest()}_commit_{pane_index:05d}-{retry_index}"


def temp_table_name(token: str, table: TableDestination, partition_index: int, pane_index: int = 0) -> str:
    name = job_id_prefix(token, table, partition_index, pane_index)
    return f"{table.dataset}.{name}" if table.dataset else name


# ---------------------------------------------------------------------------
# Polling
# ---------------------------------------------------------------------------
class Backoff:
    """Exponential delays capped at ``max_seconds``; never runs out."""

    def __init__(self, initial_seconds: float = 1.0, max_seconds: float = 60.0, multiplier: float = 1.5) -> None:
        self.initial_seconds = initial_seconds
        self.max_seconds = max_seconds
        self.multiplier = multiplier

    def delays(self) -> Iterator[float]:
        delay = self.initial_seconds
        while True:
            yield delay
            delay = min(self.max_seconds, delay * self.multiplier)


def wait_for_job(
    store: TableStore,
    job_id: str,
    backoff: Backoff,
    sleep: Callable[[float], None] = time.sleep,
) -> JobStatus:
    """Block until the job reaches SUCCESS or FAILED."""
    delays = backoff.delays()
    while True:
        status = store.poll_job(job_id)
        if status.state.terminal:
            return status
        sleep(next(delays))


def check_status(job_id: str, status: JobStatus, attempts: int) -> None:
    if status.state is JobState.SUCCESS:
        return
    if status.retryable:
        raise LoadJobTransientFailure(job_id, status)
    raise LoadJobPermanentFailure(job_id, status, attempts)


def run_with_retries(
    store: TableStore,
    submit: Callable[[int], JobHandle],
    *,
    max_attempts: int,
    backoff: Backoff,
    sleep: Callable[[float], None] = time.sleep,
    logger: Optional[PrintLogger] = None,
) -> Tuple[str, int]:
    """Submit and wait, resubmitting under the next retry index on retryable failures.

    Returns the id of the successful job and the number of attempts used.
    """
    last: Optional[LoadJobTransientFailure] = None
    for retry_index in range(max_attempts):
        handle = submit(retry_index)
        status = wait_for_job(store, handle.job_id, backoff, sleep)
        try:
            check_status(handle.job_id, status, retry_index + 1)
            return handle.job_id, retry_index + 1
        except LoadJobTransientFailure as exc:
            last = exc
            if logger is not None:
                logger.warn("job_failed_retrying", job_id=handle.job_id, status=str(status), attempt=retry_index + 1)
    assert last is not None
    raise LoadJobPermanentFailure(last.job_id, last.status, max_attempts)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class LoadResult:
    partition: Partition
    table: str
    job_id: str
    attempts: int
    temp_table: Optional[TempTableEntry] = None


class TableLoader:
    """Loads one partition per call, into a temp table or straight into the final table."""

    def __init__(
        self,
        store: TableStore,
        destinations: DynamicDestinations,
        config: LoadConfig,
        context: LoadContext,
        logger: PrintLogger,
        emitter: Optional[Emitter] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.destinations = destinations
        self.config = config
        self.context = context
        self.logger = logger
        self.emitter = emitter
        self.sleep = sleep
        self.backoff = Backoff(config.poll_initial_seconds, config.poll_max_seconds)

    def load(
        self,
        partition: Partition,
        write_disposition: Optional[WriteDisposition] = None,
        create_disposition: Optional[CreateDisposition] = None,
    ) -> LoadResult:
        table = self.destinations.get_table(partition.destination)
        token = self.context.job_id_token
        if partition.tag is PartitionTag.STAGED:
            target = temp_table_name(token, table, partition.partition_index, partition.pane_index)
            wd, cd = WriteDisposition.WRITE_EMPTY, CreateDisposition.CREATE_IF_NEEDED
        else:
            target = table.table_spec
            wd = write_disposition or self.config.write_disposition
            cd = create_disposition or self.config.create_disposition

        def _submit(retry_index: int) -> JobHandle:
            job_id = load_job_id(token, table, partition.partition_index, retry_index, partition.pane_index)
            self.logger.info(
                "load_job_submit",
                job_id=job_id,
                table=target,
                files=len(partition.files),
                bytes=partition.byte_size,
                tag=partition.tag.value,
                write_disposition=wd.value,
                create_disposition=cd.value,
            )
            return self.store.submit_load_job(job_id, partition.filenames, target, wd, cd, table.schema)

        try:
            job_id, attempts = run_with_retries(
                self.store,
                _submit,
                max_attempts=self.config.max_retry_jobs,
                backoff=self.backoff,
                sleep=self.sleep,
                logger=self.logger,
            )
        except LoadJobPermanentFailure as exc:
            self._publish(partition, target, exc.job_id, "failed", last_status=str(exc.status))
            raise
        self._publish(partition, target, job_id, "success", attempts=attempts)
        self._remove_files(partition)
        entry = None
        if partition.tag is PartitionTag.STAGED:
            entry = TempTableEntry(partition.destination, table.table_spec, target, partition.pane_index)
        return LoadResult(partition, target, job_id, attempts, entry)

    def _publish(self, partition: Partition, table: str, job_id: str, status: str, **extra) -> None:
        emit_job(
            self.emitter,
            EventType.LOAD_JOB,
            destination=partition.destination,
            status=status,
            table=table,
            job_id=job_id,
            partition=partition.partition_index,
            pane=partition.pane_index,
            **extra,
        )

    def _remove_files(self, partition: Partition) -> None:
        if not partition.files:
            return
        try:
            fs = Filesystem.for_root(self.context.temp_file_prefix)
            for filename in partition.filenames:
                fs.delete(filename)
        except Exception as exc:
            self.logger.warn("temp_files_cleanup_failed", partition=partition.partition_index, err=str(exc))
