"""Execution backends that provide bundles, keyed grouping and broadcast values."""

from .base import ExecutionTool
from .local import LocalTool

__all__ = ["ExecutionTool", "LocalTool"]
