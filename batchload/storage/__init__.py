"""Storage helpers for temporary load files."""

from .filesystem import Filesystem, HdfsFilesystem, LocalFilesystem

__all__ = ["Filesystem", "HdfsFilesystem", "LocalFilesystem"]
