from __future__ import annotations

import threading
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol

from ..common import PrintLogger, resolve_logger

PartitionFunc = Callable[[Iterator[Any], Any], Any]


@dataclass
class PartitionOutcome:
    index: int
    succeeded: bool
    error_type: Optional[str] = None
    message: Optional[str] = None


class SuccessCounter(Protocol):
    """Shared counter; only `add` is called from partition tasks."""

    @property
    def value(self) -> int: ...

    def add(self, term: int) -> None: ...


class AtomicCounter:
    def __init__(self, initial: int = 0) -> None:
        self._value = initial
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def add(self, term: int) -> None:
        with self._lock:
            self._value += term


class ExecutionTool(Protocol):
    """Execution backend that maps a function over the partitions of a dataset."""

    def num_partitions(self, dataset: Any) -> int: ...

    def counter(self, name: str) -> SuccessCounter: ...

    def run_partitions(
        self,
        dataset: Any,
        func: PartitionFunc,
        counter: Optional[SuccessCounter] = None,
    ) -> List[PartitionOutcome]: ...

    def coalesce(self, dataset: Any, num_partitions: int) -> Any: ...

    def select_columns(self, dataset: Any, schema: Any, names: List[str]) -> Any: ...

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]):  # pragma: no cover - interface
        ...

    def stop(self) -> None: ...


def run_guarded(
    func: PartitionFunc,
    index: int,
    rows: Iterator[Any],
    counter: Optional[SuccessCounter] = None,
    logger: Optional[PrintLogger] = None,
) -> PartitionOutcome:
    """Run one partition task and turn its failure into an outcome record."""
    try:
        func(rows, counter)
        return PartitionOutcome(index=index, succeeded=True)
    except Exception as exc:
        resolve_logger(logger).error(
            "partition_failed",
            partition=index,
            error_type=type(exc).__name__,
            err=str(exc),
            stacktrace=traceback.format_exc(),
        )
        return PartitionOutcome(index=index, succeeded=False, error_type=type(exc).__name__, message=str(exc))
