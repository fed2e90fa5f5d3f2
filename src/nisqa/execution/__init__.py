from nisqa.execution.orchestrator import ExecutionOrchestrator, StoreReporter
from nisqa.execution.similarity import histogram_intersection, parse_counts
from nisqa.execution.store import ExecutionStore
from nisqa.execution.tasks import TaskSupervisor
from nisqa.execution.types import ExecutionResult, ExecutionStatus

__all__ = [
    "ExecutionOrchestrator",
    "ExecutionResult",
    "ExecutionStatus",
    "ExecutionStore",
    "StoreReporter",
    "TaskSupervisor",
    "histogram_intersection",
    "parse_counts",
]
