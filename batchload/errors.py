from __future__ import annotations

from typing import Any, List, Optional, Tuple


class BatchLoadError(Exception):
    """Base class for batch-load failures."""


class ConfigurationError(BatchLoadError, ValueError):
    """Raised before execution when the load configuration is unusable."""


class LoadJobTransientFailure(BatchLoadError):
    """A load or copy job failed in a way that a resubmission may fix."""

    def __init__(self, job_id: str, status: Any) -> None:
        super().__init__(f"Job {job_id} failed with retryable status {status}")
        self.job_id = job_id
        self.status = status


class LoadJobPermanentFailure(BatchLoadError):
    """A load job cannot succeed; fatal for its destination."""

    def __init__(self, job_id: str, status: Any, attempts: int = 1) -> None:
        super().__init__(f"Job {job_id} failed after {attempts} attempt(s), last status: {status}")
        self.job_id = job_id
        self.status = status
        self.attempts = attempts


class CommitFailure(BatchLoadError):
    """Copying temp tables into the final table did not succeed."""

    def __init__(self, table: str, job_id: Optional[str], status: Any, reason: str = "") -> None:
        detail = f"Commit into {table} failed"
        if job_id:
            detail += f" (job {job_id}, last status: {status})"
        if reason:
            detail += f": {reason}"
        super().__init__(detail)
        self.table = table
        self.job_id = job_id
        self.status = status


class PipelineFailed(BatchLoadError):
    """Raised at the end of a run when one or more destinations failed."""

    def __init__(self, failures: List[Tuple[str, BaseException]]) -> None:
        lines = [f"{table}: {exc}" for table, exc in failures]
        super().__init__(f"{len(failures)} destination(s) failed:\n" + "\n".join(lines))
        self.failures = failures
