from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .common import PrintLogger
from .config import CreateDisposition, LoadConfig, WriteDisposition
from .destinations import DynamicDestinations
from .endpoints.base import JobHandle, TableStore
from .errors import CommitFailure, LoadJobPermanentFailure
from .events import Emitter, EventType, emit_job
from .jobs import Backoff, copy_job_id, run_with_retries
from .model import DestinationKey, LoadContext, TempTableEntry


@dataclass(frozen=True)
class CommitResult:
    destination: DestinationKey
    table: str
    job_id: str
    temp_tables: Tuple[str, ...]
    pane_index: int = 0


def group_entries(entries: Iterable[TempTableEntry]) -> Dict[Tuple[DestinationKey, int], List[TempTableEntry]]:
    grouped: Dict[Tuple[DestinationKey, int], List[TempTableEntry]] = {}
    for entry in entries:
        grouped.setdefault((entry.destination, entry.pane_index), []).append(entry)
    return grouped


class TableCommitter:
    """Copies all temp tables of a destination into its final table, then drops them.

    Callers pass only the temp tables that have not been consumed yet, so a
    retried commit never touches tables an earlier attempt already removed.
    """

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

    def commit(
        self,
        destination: DestinationKey,
        entries: Iterable[TempTableEntry],
        write_disposition: Optional[WriteDisposition] = None,
        create_disposition: Optional[CreateDisposition] = None,
        pane_index: int = 0,
    ) -> Optional[CommitResult]:
        temp_tables = tuple(sorted({e.temp_table for e in entries}))
        if not temp_tables:
            return None
        table = self.destinations.get_table(destination)
        wd = write_disposition or self.config.write_disposition
        cd = create_disposition or self.config.create_disposition
        token = self.context.job_id_token

        def _submit(retry_index: int) -> JobHandle:
            job_id = copy_job_id(token, table, retry_index, pane_index)
            self.logger.info(
                "copy_job_submit",
                job_id=job_id,
                table=table.table_spec,
                sources=len(temp_tables),
                write_disposition=wd.value,
                create_disposition=cd.value,
            )
            return self.store.submit_copy_job(job_id, temp_tables, table.table_spec, wd, cd)

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
            self._publish(EventType.COPY_JOB, destination, "failed", table=table.table_spec, job_id=exc.job_id)
            raise CommitFailure(table.table_spec, exc.job_id, exc.status) from exc
        self._publish(
            EventType.COPY_JOB,
            destination,
            "success",
            table=table.table_spec,
            job_id=job_id,
            attempts=attempts,
            sources=list(temp_tables),
        )
        self._remove_temp_tables(destination, temp_tables)
        return CommitResult(destination, table.table_spec, job_id, temp_tables, pane_index)

    def discard(self, destination: DestinationKey, entries: Iterable[TempTableEntry]) -> None:
        """Drop temp tables of a destination that will not be committed."""
        self._remove_temp_tables(destination, sorted({e.temp_table for e in entries}))

    def _remove_temp_tables(self, destination: DestinationKey, temp_tables: Iterable[str]) -> None:
        for name in temp_tables:
            try:
                self.store.delete_table(name)
                self._publish(EventType.TEMP_TABLE_DELETED, destination, "deleted", table=name)
            except Exception as exc:
                self.logger.warn("temp_table_delete_failed", table=name, err=str(exc))

    def _publish(self, type_: EventType, destination: DestinationKey, status: str, **payload) -> None:
        emit_job(self.emitter, type_, destination=destination, status=status, **payload)
