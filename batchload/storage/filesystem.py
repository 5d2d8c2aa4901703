from __future__ import annotations

import os
import posixpath
import shutil
from typing import BinaryIO, List, Optional

from pyspark.sql import SparkSession

HDFS_SCHEME = "hdfs://"
FILE_SCHEME = "file://"


class Filesystem:
    """Temp-file storage under one root; local paths and ``file://`` or ``hdfs://`` URIs.

    HDFS goes through the Hadoop FileSystem of the active Spark session, so it
    is only reachable from the driver. Executors writing temp files need a
    location they can open directly.
    """

    root: str

    @classmethod
    def for_root(cls, root: str, spark: Optional[SparkSession] = None) -> "Filesystem":
        if root.startswith(HDFS_SCHEME):
            spark = spark or SparkSession.getActiveSession()
            if spark is None:
                raise RuntimeError("Spark session required for HDFS filesystem access")
            return HdfsFilesystem(root, spark)
        return LocalFilesystem(root)

    def join(self, *parts: str) -> str:
        raise NotImplementedError

    def exists(self, path: str) -> bool:
        raise NotImplementedError

    def makedirs(self, path: str) -> None:
        raise NotImplementedError

    def open_write(self, path: str) -> BinaryIO:
        """Binary output stream, parents created; the caller closes it."""
        raise NotImplementedError

    def size(self, path: str) -> int:
        raise NotImplementedError

    def modified_ms(self, path: str) -> int:
        raise NotImplementedError

    def delete(self, path: str, recursive: bool = False) -> None:
        """Remove a file or directory; a missing path is not an error."""
        raise NotImplementedError

    def listdir(self, path: str) -> List[str]:
        raise NotImplementedError


def _strip_file_scheme(path: str) -> str:
    return path[len(FILE_SCHEME) :] if path.startswith(FILE_SCHEME) else path


class LocalFilesystem(Filesystem):
    def __init__(self, root: str) -> None:
        self.root = os.path.abspath(_strip_file_scheme(root))

    def _resolve(self, path: str) -> str:
        path = _strip_file_scheme(path)
        return os.path.join(self.root, path) if path else self.root

    def join(self, *parts: str) -> str:
        present = [p for p in parts if p]
        return os.path.join(*present) if present else self.root

    def exists(self, path: str) -> bool:
        return os.path.exists(self._resolve(path))

    def makedirs(self, path: str) -> None:
        os.makedirs(self._resolve(path), exist_ok=True)

    def open_write(self, path: str) -> BinaryIO:
        target = self._resolve(path)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        return open(target, "wb")

    def size(self, path: str) -> int:
        return os.stat(self._resolve(path)).st_size

    def modified_ms(self, path: str) -> int:
        return int(os.stat(self._resolve(path)).st_mtime * 1000)

    def delete(self, path: str, recursive: bool = False) -> None:
        target = self._resolve(path)
        if os.path.isdir(target):
            if recursive:
                shutil.rmtree(target)
            else:
                os.rmdir(target)
        elif os.path.exists(target):
            os.remove(target)

    def listdir(self, path: str) -> List[str]:
        target = self._resolve(path)
        return sorted(os.listdir(target)) if os.path.isdir(target) else []


class _HadoopOutput:
    """Adapts a Hadoop FSDataOutputStream to the ``write``/``close`` file protocol."""

    def __init__(self, stream) -> None:
        self._stream = stream

    def write(self, data: bytes) -> int:
        self._stream.write(bytearray(data))
        return len(data)

    def close(self) -> None:
        self._stream.close()


class HdfsFilesystem(Filesystem):
    def __init__(self, root: str, spark: SparkSession) -> None:
        self.root = root.rstrip("/")
        jvm = spark.sparkContext._jvm
        self._Path = jvm.org.apache.hadoop.fs.Path
        self._fs = self._Path(self.root).getFileSystem(spark._jsc.hadoopConfiguration())

    def _path(self, path: str):
        if not path:
            return self._Path(self.root)
        if path.startswith(HDFS_SCHEME):
            return self._Path(path.rstrip("/"))
        return self._Path(posixpath.join(self.root, path.lstrip("/")))

    def join(self, *parts: str) -> str:
        joined = ""
        for part in parts:
            if not part:
                continue
            if part.startswith(HDFS_SCHEME) or not joined:
                # an absolute URI restarts the path
                joined = part.rstrip("/")
            else:
                joined = posixpath.join(joined, part.strip("/"))
        return joined or self.root

    def exists(self, path: str) -> bool:
        return bool(self._fs.exists(self._path(path)))

    def makedirs(self, path: str) -> None:
        self._fs.mkdirs(self._path(path))

    def open_write(self, path: str) -> _HadoopOutput:
        # create() makes missing parent directories
        return _HadoopOutput(self._fs.create(self._path(path), True))

    def size(self, path: str) -> int:
        return int(self._fs.getFileStatus(self._path(path)).getLen())

    def modified_ms(self, path: str) -> int:
        return int(self._fs.getFileStatus(self._path(path)).getModificationTime())

    def delete(self, path: str, recursive: bool = False) -> None:
        target = self._path(path)
        if self._fs.exists(target):
            self._fs.delete(target, bool(recursive))

    def listdir(self, path: str) -> List[str]:
        target = self._path(path)
        if not self._fs.exists(target):
            return []
        return sorted(str(status.getPath().getName()) for status in self._fs.listStatus(target))
