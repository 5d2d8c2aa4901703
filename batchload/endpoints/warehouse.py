from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, Optional, Sequence, Tuple

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql import functions as F
from pyspark.errors import AnalysisException

from ..common import PrintLogger
from ..config import CreateDisposition, WriteDisposition
from ..model import JobState, JobStatus, LoadJob
from .base import JobHandle, TableStore, is_retryable_reason


class JobError(Exception):
    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class HiveHelper:
    """Helpers for managing Hive-compatible tables through the Spark catalog."""

    @staticmethod
    def split(table: str) -> Tuple[str, str]:
        if "." not in table:
            return "default", table
        db, name = table.rsplit(".", 1)
        return db, name

    @staticmethod
    def quoted(table: str) -> str:
        db, name = HiveHelper.split(table)
        return f"`{db}`.`{name}`"

    @staticmethod
    def table_exists(spark: SparkSession, table: str) -> bool:
        db, name = HiveHelper.split(table)
        return spark._jsparkSession.catalog().tableExists(db, name)

    @staticmethod
    def is_empty(spark: SparkSession, table: str) -> bool:
        return spark.table(HiveHelper.quoted(table)).limit(1).count() == 0

    @staticmethod
    def align_to_table(spark: SparkSession, df: DataFrame, table: str) -> DataFrame:
        target = spark.table(HiveHelper.quoted(table)).schema
        for field in target.fields:
            if field.name not in df.columns:
                df = df.withColumn(field.name, F.lit(None).cast(field.dataType))
        return df.select([F.col(f"`{f.name}`").cast(f.dataType) for f in target.fields])


class SparkWarehouseStore(TableStore):
    """Runs load and copy jobs against the Spark catalog on a background pool."""

    def __init__(
        self,
        spark: SparkSession,
        logger: PrintLogger,
        *,
        max_workers: int = 4,
        table_format: str = "parquet",
    ) -> None:
        self.spark = spark
        self.logger = logger
        self.table_format = table_format
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="warehouse-job")
        self._jobs: Dict[str, Tuple[LoadJob, Future]] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ TableStore protocol
    def submit_load_job(
        self,
        job_id: str,
        source_files: Sequence[str],
        table: str,
        write_disposition: WriteDisposition,
        create_disposition: CreateDisposition,
        schema: Optional[str] = None,
    ) -> JobHandle:
        job = LoadJob(job_id, tuple(source_files), table, write_disposition, create_disposition)
        return self._submit(job, "load", lambda: self._run_load(job, schema))

    def submit_copy_job(
        self,
        job_id: str,
        source_tables: Sequence[str],
        table: str,
        write_disposition: WriteDisposition,
        create_disposition: CreateDisposition,
    ) -> JobHandle:
        job = LoadJob(job_id, tuple(source_tables), table, write_disposition, create_disposition)
        return self._submit(job, "copy", lambda: self._run_copy(job))

    def poll_job(self, job_id: str) -> JobStatus:
        with self._lock:
            entry = self._jobs.get(job_id)
        if entry is None:
            return JobStatus(JobState.FAILED, reason="notFound", message=f"unknown job {job_id}", retryable=False)
        _, future = entry
        if not future.done():
            return JobStatus(JobState.RUNNING if future.running() else JobState.PENDING)
        exc = future.exception()
        if exc is None:
            return JobStatus(JobState.SUCCESS)
        reason = getattr(exc, "reason", "backendError")
        return JobStatus(JobState.FAILED, reason=reason, message=str(exc), retryable=is_retryable_reason(reason))

    def delete_table(self, table: str) -> None:
        self.spark.sql(f"DROP TABLE IF EXISTS {HiveHelper.quoted(table)}")

    def close(self) -> None:
        self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------ internals
    def _submit(self, job: LoadJob, kind: str, run) -> JobHandle:
        with self._lock:
            if job.job_id in self._jobs:
                self.logger.info("warehouse_job_exists", job_id=job.job_id, kind=kind, table=job.table)
                return JobHandle(job.job_id, kind, job.table)
            self._jobs[job.job_id] = (job, self._executor.submit(run))
        self.logger.info("warehouse_job_submitted", job_id=job.job_id, kind=kind, table=job.table)
        return JobHandle(job.job_id, kind, job.table)

    def _run_load(self, job: LoadJob, schema: Optional[str]) -> None:
        reader = self.spark.read
        if schema:
            reader = reader.schema(schema)
        try:
            df = reader.json(list(job.source_files))
        except AnalysisException as exc:
            raise JobError("invalid", str(exc)) from exc
        self._write(df, job)

    def _run_copy(self, job: LoadJob) -> None:
        df: Optional[DataFrame] = None
        for source in job.source_files:
            if not HiveHelper.table_exists(self.spark, source):
                raise JobError("notFound", f"source table {source} does not exist")
            part = self.spark.table(HiveHelper.quoted(source))
            df = part if df is None else df.unionByName(part, allowMissingColumns=True)
        if df is None:
            raise JobError("invalid", "copy job without source tables")
        self._write(df, job)

    def _write(self, df: DataFrame, job: LoadJob) -> None:
        table = job.table
        exists = HiveHelper.table_exists(self.spark, table)
        if not exists and job.create_disposition == CreateDisposition.CREATE_NEVER:
            raise JobError("notFound", f"table {table} does not exist and create disposition is CREATE_NEVER")
        if exists and job.write_disposition == WriteDisposition.WRITE_EMPTY and not HiveHelper.is_empty(self.spark, table):
            raise JobError("duplicate", f"table {table} is not empty and write disposition is WRITE_EMPTY")
        try:
            if exists:
                aligned = HiveHelper.align_to_table(self.spark, df, table)
                aligned.write.insertInto(
                    HiveHelper.quoted(table),
                    overwrite=job.write_disposition == WriteDisposition.WRITE_TRUNCATE,
                )
            else:
                if not df.columns:
                    raise JobError("invalid", f"cannot create {table} without a schema")
                db, _ = HiveHelper.split(table)
                self.spark.sql(f"CREATE DATABASE IF NOT EXISTS `{db}`")
                df.write.format(self.table_format).saveAsTable(HiveHelper.quoted(table))
        except AnalysisException as exc:
            raise JobError("schemaMismatch", str(exc)) from exc
