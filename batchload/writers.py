from __future__ import annotations

import json
import uuid
from typing import Any, Iterable, List, Optional

from .model import DestinationKey, FileResult
from .storage.filesystem import Filesystem


def encode_row(row: Any) -> bytes:
    return (json.dumps(row, separators=(",", ":"), ensure_ascii=False, default=str) + "\n").encode("utf-8")


class TableRowWriter:
    """Writes newline-delimited JSON rows to one uniquely named temp file."""

    def __init__(self, fs: Filesystem, prefix: str) -> None:
        self.filename = fs.join(prefix, uuid.uuid4().hex)
        self._out = fs.open_write(self.filename)
        self.byte_size = 0
        self.rows = 0
        self.closed = False

    def write(self, row: Any) -> None:
        data = encode_row(row)
        self._out.write(data)
        self.byte_size += len(data)
        self.rows += 1

    def close(self) -> None:
        if not self.closed:
            self._out.close()
            self.closed = True


class RollingWriter:
    """Per-destination writer that starts a new file once max_file_size is reached."""

    def __init__(self, fs: Filesystem, prefix: str, destination: DestinationKey, max_file_size: int) -> None:
        self.fs = fs
        self.prefix = prefix
        self.destination = destination
        self.max_file_size = max_file_size
        self.results: List[FileResult] = []
        self._current: Optional[TableRowWriter] = None

    def write(self, row: Any) -> None:
        if self._current is None:
            self._current = TableRowWriter(self.fs, self.prefix)
        self._current.write(row)
        if self._current.byte_size >= self.max_file_size:
            self._finish_current()

    def _finish_current(self) -> None:
        writer = self._current
        if writer is None:
            return
        writer.close()
        self.results.append(FileResult(writer.filename, writer.byte_size, self.destination))
        self._current = None

    def close(self) -> List[FileResult]:
        self._finish_current()
        return list(self.results)

    def abort(self) -> None:
        if self._current is not None:
            self._current.close()
            self.fs.delete(self._current.filename)
            self._current = None


def write_grouped_records(
    prefix: str,
    destination: DestinationKey,
    rows: Iterable[Any],
    max_file_size: int,
) -> List[FileResult]:
    """Write one key group; only one file is open at a time."""
    fs = Filesystem.for_root(prefix)
    writer = RollingWriter(fs, prefix, destination, max_file_size)
    try:
        for row in rows:
            writer.write(row)
    except Exception:
        writer.abort()
        raise
    return writer.close()


def write_empty_file(prefix: str, destination: DestinationKey) -> FileResult:
    fs = Filesystem.for_root(prefix)
    writer = TableRowWriter(fs, prefix)
    writer.close()
    return FileResult(writer.filename, 0, destination)
