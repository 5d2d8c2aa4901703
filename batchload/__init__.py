"""Bulk loading of keyed rows into table-store tables through staged files and load jobs."""

from .common import RUN_ID, PrintLogger
from .config import CreateDisposition, LoadConfig, WriteDisposition, validate_config
from .destinations import (
    ConstantTableDestinations,
    DynamicDestinations,
    FormattedTableDestinations,
    destinations_from_config,
)
from .errors import (
    BatchLoadError,
    CommitFailure,
    ConfigurationError,
    LoadJobPermanentFailure,
    LoadJobTransientFailure,
    PipelineFailed,
)
from .orchestrator import BatchLoads, WriteResult, main, parse_args, run_cli

__all__ = [
    "RUN_ID",
    "PrintLogger",
    "BatchLoads",
    "BatchLoadError",
    "CommitFailure",
    "ConfigurationError",
    "ConstantTableDestinations",
    "CreateDisposition",
    "DynamicDestinations",
    "FormattedTableDestinations",
    "LoadConfig",
    "LoadJobPermanentFailure",
    "LoadJobTransientFailure",
    "PipelineFailed",
    "WriteDisposition",
    "WriteResult",
    "destinations_from_config",
    "main",
    "parse_args",
    "run_cli",
    "validate_config",
]
