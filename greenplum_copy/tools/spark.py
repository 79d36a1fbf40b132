from __future__ import annotations

from typing import Any, Dict, List, Optional

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.types import StructType

from ..bundle import build_bundle
from ..common import PrintLogger
from .base import ExecutionTool, PartitionFunc, PartitionOutcome, SuccessCounter, run_guarded


class SparkTool(ExecutionTool):
    """Runs partition tasks on Spark executors.

    Partition failures are caught on the executor and returned as outcomes, so
    Spark never retries a task and the driver sees every partition's result.
    """

    def __init__(self, spark: SparkSession, logger: Optional[PrintLogger] = None) -> None:
        self.spark = spark
        self.logger = logger

    def read(self, path: str, fmt: str = "parquet", options: Optional[Dict[str, Any]] = None) -> DataFrame:
        reader = self.spark.read.format(fmt)
        for key, value in (options or {}).items():
            reader = reader.option(key, value)
        return reader.load(path)

    def num_partitions(self, dataset: DataFrame) -> int:
        return dataset.rdd.getNumPartitions()

    def counter(self, name: str) -> SuccessCounter:
        # PySpark accumulators are unnamed; the name only shows in logs.
        return self.spark.sparkContext.accumulator(0)

    def run_partitions(
        self,
        dataset: DataFrame,
        func: PartitionFunc,
        counter: Optional[SuccessCounter] = None,
    ) -> List[PartitionOutcome]:
        logger = self.logger

        def _task(index, rows):
            yield run_guarded(func, index, rows, counter=counter, logger=logger)

        return dataset.rdd.mapPartitionsWithIndex(_task).collect()

    def coalesce(self, dataset: DataFrame, num_partitions: int) -> DataFrame:
        return dataset.coalesce(num_partitions)

    def select_columns(self, dataset: DataFrame, schema: StructType, names: List[str]) -> DataFrame:
        return dataset.select(*names)

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], logger: Optional[PrintLogger] = None) -> "SparkTool":
        runtime = cfg.get("runtime", {})
        builder = SparkSession.builder.appName(runtime.get("app_name", "greenplum_copy"))
        builder = builder.config("spark.dynamicAllocation.enabled", str(runtime.get("dynamicAllocation", "true")))
        builder = builder.config("spark.dynamicAllocation.maxExecutors", str(runtime.get("maxExecutors", "2")))
        builder = builder.config("spark.executor.cores", str(runtime.get("executor.cores", "4")))
        builder = builder.config("spark.executor.memory", str(runtime.get("executor.memory", "8g")))
        builder = builder.config("spark.driver.memory", str(runtime.get("driver.memory", "6g")))
        # A failed partition must surface through the success count, not through task retries.
        builder = builder.config("spark.task.maxFailures", str(runtime.get("task.maxFailures", "1")))
        if runtime.get("timezone"):
            builder = builder.config("spark.sql.session.timeZone", runtime["timezone"])
        extra_jars = runtime.get("extra_jars", [])
        if extra_jars:
            builder = builder.config("spark.jars", ",".join(extra_jars))
        extra_conf: Dict[str, Any] = runtime.get("spark_conf", {})
        for key, value in extra_conf.items():
            builder = builder.config(key, value)
        if runtime.get("enable_hive_support", False):
            builder = builder.enableHiveSupport()
        spark = builder.getOrCreate()
        if runtime.get("ship_package", False):
            spark.sparkContext.addPyFile(str(build_bundle()))
        return cls(spark, logger=logger)

    def stop(self) -> None:
        if self.spark is not None:
            self.spark.stop()
