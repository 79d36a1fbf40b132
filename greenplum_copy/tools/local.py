from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from itertools import chain
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from pyspark.sql.types import StructType

from ..common import PrintLogger
from .base import AtomicCounter, ExecutionTool, PartitionFunc, PartitionOutcome, SuccessCounter, run_guarded


class LocalTool(ExecutionTool):
    """In-process execution over a sequence of partitions using a thread pool."""

    def __init__(self, max_workers: int = 4, logger: Optional[PrintLogger] = None) -> None:
        self.max_workers = max(1, int(max_workers))
        self.logger = logger

    def num_partitions(self, dataset: Sequence[Iterable[Any]]) -> int:
        return len(dataset)

    def counter(self, name: str) -> SuccessCounter:
        return AtomicCounter()

    def run_partitions(
        self,
        dataset: Sequence[Iterable[Any]],
        func: PartitionFunc,
        counter: Optional[SuccessCounter] = None,
    ) -> List[PartitionOutcome]:
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="partition") as executor:
            futures = [
                executor.submit(run_guarded, func, idx, iter(rows), counter, self.logger)
                for idx, rows in enumerate(dataset)
            ]
            return [fut.result() for fut in futures]

    def coalesce(self, dataset: Sequence[Iterable[Any]], num_partitions: int) -> List[List[Any]]:
        if num_partitions != 1:
            raise ValueError("LocalTool only coalesces to a single partition")
        return [list(chain.from_iterable(dataset))]

    def select_columns(
        self,
        dataset: Sequence[Iterable[Any]],
        schema: StructType,
        names: List[str],
    ) -> List[Iterator[Tuple[Any, ...]]]:
        positions = [schema.fieldNames().index(name) for name in names]
        return [_project(rows, positions) for rows in dataset]

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], logger: Optional[PrintLogger] = None) -> "LocalTool":
        return cls(max_workers=int(cfg.get("runtime", {}).get("max_parallel_partitions", 4)), logger=logger)

    def stop(self) -> None:
        pass


def _project(rows: Iterable[Any], positions: List[int]) -> Iterator[Tuple[Any, ...]]:
    for row in rows:
        yield tuple(row[pos] for pos in positions)
