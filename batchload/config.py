from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .errors import ConfigurationError

# Maximum number of file writers open at once in a bundle when sharding dynamically.
DEFAULT_MAX_NUM_WRITERS_PER_BUNDLE = 20

# Maximum number of files in a single partition.
MAX_NUM_FILES = 10000

# Maximum bytes in a single partition, 11 TiB (just under the 12 TiB load limit).
MAX_SIZE_BYTES = 11 * (1 << 40)

# Maximum size of a single file, 4 TiB (just under the 5 TiB limit).
DEFAULT_MAX_FILE_SIZE = 4 * (1 << 40)

DEFAULT_NUM_FILE_SHARDS = 0

# With a user trigger, files are also written after this many buffered records.
FILE_TRIGGERING_RECORD_COUNT = 500000

# Spilled rows in the dynamic path are spread over this many shards per destination.
SPILLED_RECORD_SHARDING_FACTOR = 10

MAX_RETRY_JOBS = 3


class WriteDisposition(str, Enum):
    WRITE_TRUNCATE = "WRITE_TRUNCATE"
    WRITE_APPEND = "WRITE_APPEND"
    WRITE_EMPTY = "WRITE_EMPTY"


class CreateDisposition(str, Enum):
    CREATE_IF_NEEDED = "CREATE_IF_NEEDED"
    CREATE_NEVER = "CREATE_NEVER"


@dataclass(frozen=True)
class LoadConfig:
    temp_location: str
    write_disposition: WriteDisposition = WriteDisposition.WRITE_EMPTY
    create_disposition: CreateDisposition = CreateDisposition.CREATE_IF_NEEDED
    max_num_writers_per_bundle: int = DEFAULT_MAX_NUM_WRITERS_PER_BUNDLE
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    num_file_shards: int = DEFAULT_NUM_FILE_SHARDS
    triggering_frequency: Optional[float] = None
    singleton_table: bool = False
    max_retry_jobs: int = MAX_RETRY_JOBS
    max_parallel_loads: int = 4
    num_bundles: Optional[int] = None
    poll_initial_seconds: float = 1.0
    poll_max_seconds: float = 60.0
    max_files_per_partition: int = MAX_NUM_FILES
    max_bytes_per_partition: int = MAX_SIZE_BYTES
    file_triggering_record_count: int = FILE_TRIGGERING_RECORD_COUNT
    temp_ttl_hours: int = 72
    job_name: str = "batch_loads"
    log_file: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        load = {
            name: getattr(self, name)
            for name in self.__dataclass_fields__
            if name != "extra" and getattr(self, name) is not None
        }
        _check_load(load)

    @property
    def triggered(self) -> bool:
        return self.triggering_frequency is not None

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any]) -> "LoadConfig":
        validate_config(cfg)
        load = dict(cfg["load"])
        known = {f for f in cls.__dataclass_fields__ if f != "extra"}
        kwargs = {k: v for k, v in load.items() if k in known}
        kwargs["extra"] = {k: v for k, v in load.items() if k not in known}
        kwargs["write_disposition"] = WriteDisposition(load.get("write_disposition", "WRITE_EMPTY"))
        kwargs["create_disposition"] = CreateDisposition(load.get("create_disposition", "CREATE_IF_NEEDED"))
        if kwargs.get("triggering_frequency") is not None:
            kwargs["triggering_frequency"] = float(kwargs["triggering_frequency"])
        return cls(**kwargs)


def _positive_int(load: Dict[str, Any], key: str, allow_zero: bool = False) -> None:
    if key not in load:
        return
    value = load[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"load.{key} must be an integer, got {value!r}")
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigurationError(f"load.{key} must be {'>= 0' if allow_zero else '> 0'}, got {value}")


def validate_config(cfg: Dict[str, Any]) -> None:
    if "load" not in cfg:
        raise ConfigurationError("Missing config key: load")
    _check_load(cfg["load"])


def _check_load(load: Dict[str, Any]) -> None:
    temp_location = load.get("temp_location")
    if not temp_location or not str(temp_location).strip():
        raise ConfigurationError("load.temp_location is required to store temp files")
    scheme = str(temp_location).split("://", 1)[0] if "://" in str(temp_location) else ""
    if scheme not in ("", "file", "hdfs"):
        raise ConfigurationError(
            f"load.temp_location expected a local, file:// or hdfs:// path, but was given '{temp_location}'"
        )
    try:
        WriteDisposition(load.get("write_disposition", "WRITE_EMPTY"))
        CreateDisposition(load.get("create_disposition", "CREATE_IF_NEEDED"))
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    for key in (
        "max_num_writers_per_bundle",
        "max_file_size",
        "max_retry_jobs",
        "max_parallel_loads",
        "max_files_per_partition",
        "max_bytes_per_partition",
        "file_triggering_record_count",
    ):
        _positive_int(load, key)
    _positive_int(load, "num_file_shards", allow_zero=True)
    freq = load.get("triggering_frequency")
    if freq is not None:
        try:
            freq_value = float(freq)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"load.triggering_frequency must be seconds, got {freq!r}") from exc
        if freq_value <= 0:
            raise ConfigurationError("load.triggering_frequency must be > 0")
        if int(load.get("num_file_shards", DEFAULT_NUM_FILE_SHARDS)) <= 0:
            raise ConfigurationError("load.num_file_shards must be > 0 when triggering_frequency is set")


def require_worker_reachable(temp_location: str) -> None:
    """Reject temp locations that executors cannot open without a Spark session."""
    if str(temp_location).startswith("hdfs://"):
        raise ConfigurationError(
            f"load.temp_location '{temp_location}' is driver-only; executors write temp files "
            "directly, so use a local or file:// path on storage shared with the executors"
        )
