"""
Table-store endpoints that run load and copy jobs.

Stages depend only on the ``TableStore`` protocol so the same orchestration
runs against the Spark catalog or an in-memory store in tests.
"""

from .base import JobHandle, NON_RETRYABLE_REASONS, TableStore, is_retryable_reason

__all__ = [
    "JobHandle",
    "NON_RETRYABLE_REASONS",
    "TableStore",
    "is_retryable_reason",
]
