from .base import AtomicCounter, ExecutionTool, PartitionOutcome, SuccessCounter, run_guarded
from .local import LocalTool

__all__ = [
    "AtomicCounter",
    "ExecutionTool",
    "LocalTool",
    "PartitionOutcome",
    "SuccessCounter",
    "run_guarded",
]
