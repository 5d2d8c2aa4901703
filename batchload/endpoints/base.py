from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, runtime_checkable

from ..config import CreateDisposition, WriteDisposition
from ..model import JobStatus

# Failure reasons a resubmission cannot fix.
NON_RETRYABLE_REASONS = frozenset(
    {
        "invalid",
        "invalidQuery",
        "schemaMismatch",
        "accessDenied",
        "notFound",
        "duplicate",
    }
)


def is_retryable_reason(reason: Optional[str]) -> bool:
    return reason not in NON_RETRYABLE_REASONS


@dataclass(frozen=True)
class JobHandle:
    job_id: str
    kind: str  # "load" | "copy"
    table: str


@runtime_checkable
class TableStore(Protocol):
    """Contract for the remote table store that runs load and copy jobs.

    Submitting a job id that already exists must return the existing job
    rather than start a second one.
    """

    def submit_load_job(
        self,
        job_id: str,
        source_files: Sequence[str],
        table: str,
        write_disposition: WriteDisposition,
        create_disposition: CreateDisposition,
        schema: Optional[str] = None,
    ) -> JobHandle: ...

    def submit_copy_job(
        self,
        job_id: str,
        source_tables: Sequence[str],
        table: str,
        write_disposition: WriteDisposition,
        create_disposition: CreateDisposition,
    ) -> JobHandle: ...

    def poll_job(self, job_id: str) -> JobStatus: ...

    def delete_table(self, table: str) -> None: ...
