from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from nisqa.targeting.types import CircuitInformation


class ExecutionStatus(str, Enum):
    initialized = "INITIALIZED"
    running = "RUNNING"
    finished = "FINISHED"
    failed = "FAILED"

    @property
    def terminal(self) -> bool:
        return self in (ExecutionStatus.finished, ExecutionStatus.failed)

    @property
    def rank(self) -> int:
        if self is ExecutionStatus.initialized:
            return 0
        if self is ExecutionStatus.running:
            return 1
        return 2


@dataclass(slots=True)
class ExecutionResult:
    id: str
    implementation_id: str
    target_id: str
    status: ExecutionStatus = ExecutionStatus.initialized
    status_detail: str = ""
    shots: int = 0
    result: str = ""
    context_id: str | None = None
    circuit: CircuitInformation | None = None
    histogram_intersection: float | None = None
    binding: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
