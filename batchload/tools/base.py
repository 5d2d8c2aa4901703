from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Protocol

BundleFn = Callable[[int, Iterator[Any]], Iterable[Any]]


class ExecutionTool(Protocol):
    """Execution backend interface (Spark, in-process, etc.).

    ``group_by_key`` is the keyed barrier: each key is delivered exactly once
    with all of its values. ``materialize`` gathers a dataset on the driver and
    is also the checkpoint before load jobs are submitted.
    """

    # bundles run in separate worker processes without a Spark session
    remote_workers: bool = False

    def parallelize(self, items: Iterable[Any], num_bundles: Optional[int] = None) -> Any: ...

    def broadcast(self, value: Any) -> Any: ...

    def map_bundles(self, data: Any, fn: BundleFn) -> Any: ...

    def group_by_key(self, data: Any) -> Any: ...

    def union(self, *datasets: Any) -> Any: ...

    def persist(self, data: Any) -> Any: ...

    def materialize(self, data: Any) -> List[Any]: ...

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]):  # pragma: no cover - interface
        ...

    def stop(self) -> None: ...
