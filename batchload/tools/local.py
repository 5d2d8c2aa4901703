from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .base import BundleFn, ExecutionTool


@dataclass
class LocalBroadcast:
    value: Any


class LocalDataset:
    """Eagerly evaluated list of bundles."""

    def __init__(self, bundles: List[List[Any]]) -> None:
        self.bundles = bundles

    def __iter__(self):
        for bundle in self.bundles:
            yield from bundle

    def __len__(self) -> int:
        return sum(len(b) for b in self.bundles)


class LocalTool(ExecutionTool):
    """Runs every bundle in the calling thread; used for tests and small loads."""

    def __init__(self, default_bundles: int = 4) -> None:
        self.default_bundles = max(1, int(default_bundles))

    def parallelize(self, items: Iterable[Any], num_bundles: Optional[int] = None) -> LocalDataset:
        if isinstance(items, LocalDataset):
            return items
        values = list(items)
        n = max(1, int(num_bundles or self.default_bundles))
        size = (len(values) + n - 1) // n if values else 0
        bundles = [values[i * size : (i + 1) * size] for i in range(n)] if size else [[] for _ in range(n)]
        return LocalDataset(bundles)

    def broadcast(self, value: Any) -> LocalBroadcast:
        return LocalBroadcast(value)

    def map_bundles(self, data: LocalDataset, fn: BundleFn) -> LocalDataset:
        return LocalDataset([list(fn(idx, iter(bundle))) for idx, bundle in enumerate(data.bundles)])

    def group_by_key(self, data: LocalDataset) -> LocalDataset:
        groups: Dict[Any, List[Any]] = {}
        for key, value in data:
            groups.setdefault(key, []).append(value)
        n = max(1, len(data.bundles))
        bundles: List[List[Any]] = [[] for _ in range(n)]
        for idx, item in enumerate(groups.items()):
            bundles[idx % n].append(item)
        return LocalDataset(bundles)

    def union(self, *datasets: LocalDataset) -> LocalDataset:
        bundles: List[List[Any]] = []
        for data in datasets:
            bundles.extend(data.bundles)
        return LocalDataset(bundles)

    def persist(self, data: LocalDataset) -> LocalDataset:
        return data

    def materialize(self, data: LocalDataset) -> List[Any]:
        return list(data)

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "LocalTool":
        return cls(default_bundles=int(cfg.get("load", {}).get("num_bundles") or 4))

    def stop(self) -> None:
        pass
