from __future__ import annotations

import hashlib
import random
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Hashable, Optional, Tuple

from .config import CreateDisposition, WriteDisposition
from .staging import Staging

DestinationKey = Hashable


@dataclass(frozen=True)
class TableDestination:
    """Resolved target table for a destination key."""

    table_spec: str
    schema: Optional[str] = None
    description: Optional[str] = None

    @property
    def dataset(self) -> str:
        return self.table_spec.rsplit(".", 1)[0] if "." in self.table_spec else ""

    @property
    def table(self) -> str:
        return self.table_spec.rsplit(".", 1)[-1]

    def digest(self) -> str:
        return hashlib.sha1(self.table_spec.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class ShardedKey:
    destination: DestinationKey
    shard: int


@dataclass(frozen=True)
class FileResult:
    filename: str
    byte_size: int
    destination: DestinationKey


class PartitionTag(str, Enum):
    DIRECT = "direct"
    STAGED = "staged"


@dataclass(frozen=True)
class Partition:
    destination: DestinationKey
    partition_index: int
    files: Tuple[FileResult, ...]
    tag: PartitionTag
    pane_index: int = 0

    @property
    def byte_size(self) -> int:
        return sum(f.byte_size for f in self.files)

    @property
    def filenames(self) -> Tuple[str, ...]:
        return tuple(f.filename for f in self.files)


class JobState(str, Enum):
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @property
    def terminal(self) -> bool:
        return self in (JobState.SUCCESS, JobState.FAILED)


@dataclass(frozen=True)
class JobStatus:
    state: JobState
    reason: Optional[str] = None
    message: Optional[str] = None
    retryable: bool = True

    def __str__(self) -> str:
        if self.state is JobState.FAILED:
            return f"FAILED({self.reason or 'unknown'}: {self.message or ''})"
        return self.state.value


@dataclass
class LoadJob:
    job_id: str
    source_files: Tuple[str, ...]
    table: str
    write_disposition: WriteDisposition
    create_disposition: CreateDisposition
    status: JobStatus = field(default_factory=lambda: JobStatus(JobState.PENDING))


@dataclass(frozen=True)
class TempTableEntry:
    """A loaded temp table waiting to be committed into its final table."""

    destination: DestinationKey
    final_table: str
    temp_table: str
    pane_index: int = 0


@dataclass(frozen=True)
class LoadContext:
    """Values computed once per execution and passed to every stage."""

    job_id_token: str
    temp_file_prefix: str
    shard_seed: int

    @classmethod
    def create(cls, temp_location: str) -> "LoadContext":
        token = uuid.uuid4().hex
        return cls(
            job_id_token=token,
            temp_file_prefix=Staging.temp_file_prefix(temp_location, token),
            shard_seed=random.SystemRandom().randrange(1 << 31),
        )

    def describe(self) -> Any:
        return {"job_id_token": self.job_id_token, "temp_file_prefix": self.temp_file_prefix}
