from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional

from .config import MAX_NUM_FILES, MAX_SIZE_BYTES
from .model import DestinationKey, FileResult, Partition, PartitionTag


class FilePartitioner:
    """Packs the files of each destination into partitions that fit one load job.

    A destination whose files fit a single partition is loaded directly into
    its final table unless ``singleton_table`` is set; every other destination
    goes through temp tables.
    """

    def __init__(
        self,
        *,
        max_files: int = MAX_NUM_FILES,
        max_bytes: int = MAX_SIZE_BYTES,
        singleton_table: bool = False,
    ) -> None:
        self.max_files = max_files
        self.max_bytes = max_bytes
        self.singleton_table = singleton_table

    def pack(self, files: Iterable[FileResult]) -> List[List[FileResult]]:
        groups: List[List[FileResult]] = [[]]
        current_bytes = 0
        for result in files:
            current = groups[-1]
            if current and (
                len(current) + 1 > self.max_files or current_bytes + result.byte_size > self.max_bytes
            ):
                groups.append([])
                current = groups[-1]
                current_bytes = 0
            current.append(result)
            current_bytes += result.byte_size
        return groups

    def partition_destination(
        self,
        destination: DestinationKey,
        files: Iterable[FileResult],
        pane_index: int = 0,
    ) -> List[Partition]:
        groups = self.pack(files)
        tag = PartitionTag.DIRECT if len(groups) == 1 and not self.singleton_table else PartitionTag.STAGED
        return [
            Partition(
                destination=destination,
                partition_index=idx,
                files=tuple(group),
                tag=tag,
                pane_index=pane_index,
            )
            for idx, group in enumerate(groups)
        ]

    def partition(
        self,
        results: Iterable[FileResult],
        *,
        pane_index: int = 0,
        default_destination: Optional[DestinationKey] = None,
        empty_file: Optional[Callable[[DestinationKey], FileResult]] = None,
    ) -> Dict[DestinationKey, List[Partition]]:
        """Partition a complete set of file results, keyed by destination.

        With ``singleton_table`` and no input at all, ``empty_file`` is used to
        produce one zero-byte file for ``default_destination`` so its table still
        gets created.
        """
        by_destination: Dict[DestinationKey, List[FileResult]] = {}
        for result in results:
            by_destination.setdefault(result.destination, []).append(result)
        if not by_destination and self.singleton_table and default_destination is not None:
            if empty_file is None:
                raise ValueError("empty_file factory required to create an empty singleton table")
            by_destination[default_destination] = [empty_file(default_destination)]
        return {
            destination: self.partition_destination(destination, files, pane_index)
            for destination, files in by_destination.items()
        }
