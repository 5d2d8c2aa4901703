from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from pyspark import RDD, StorageLevel
from pyspark.sql import SparkSession

from .base import BundleFn, ExecutionTool


class SparkTool(ExecutionTool):
    remote_workers = True

    def __init__(self, spark: SparkSession) -> None:
        self.spark = spark
        self.sc = spark.sparkContext

    def parallelize(self, items: Iterable[Any], num_bundles: Optional[int] = None) -> RDD:
        if isinstance(items, RDD):
            return items.repartition(num_bundles) if num_bundles else items
        return self.sc.parallelize(list(items), num_bundles or self.sc.defaultParallelism)

    def broadcast(self, value: Any):
        return self.sc.broadcast(value)

    def map_bundles(self, data: RDD, fn: BundleFn) -> RDD:
        return data.mapPartitionsWithIndex(fn)

    def group_by_key(self, data: RDD) -> RDD:
        return data.groupByKey().mapValues(list)

    def union(self, *datasets: RDD) -> RDD:
        return self.sc.union(list(datasets))

    def persist(self, data: RDD) -> RDD:
        return data.persist(StorageLevel.MEMORY_AND_DISK)

    def materialize(self, data: RDD) -> List[Any]:
        return data.collect()

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "SparkTool":
        runtime = cfg.get("runtime", {})
        builder = SparkSession.builder.appName(runtime.get("app_name", "batch_loads"))
        builder = builder.config("spark.dynamicAllocation.enabled", str(runtime.get("dynamicAllocation", "true")))
        builder = builder.config("spark.dynamicAllocation.maxExecutors", str(runtime.get("maxExecutors", "2")))
        builder = builder.config("spark.shuffle.service.enabled", "true")
        builder = builder.config("spark.executor.cores", str(runtime.get("executor.cores", "4")))
        builder = builder.config("spark.executor.memory", str(runtime.get("executor.memory", "8g")))
        builder = builder.config("spark.driver.memory", str(runtime.get("driver.memory", "6g")))
        builder = builder.config("spark.sql.session.timeZone", runtime.get("timezone", "UTC"))
        extra_conf: Dict[str, Any] = runtime.get("spark_conf", {})
        for key, value in extra_conf.items():
            builder = builder.config(key, value)
        if runtime.get("enable_hive_support", True):
            builder = builder.enableHiveSupport()
        spark = builder.getOrCreate()
        return cls(spark)

    def stop(self) -> None:
        if self.spark is not None:
            self.spark.stop()
