from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

from nisqa.execution.types import ExecutionStatus

Direction = Literal["min", "max"]
JobKind = Literal["rank", "learn-weights"]
PollState = Literal["pending", "success", "failure"]


@dataclass(frozen=True, slots=True)
class RankingCriterion:
    name: str
    weight: float
    direction: Direction

    @property
    def minimize(self) -> bool:
        return self.direction == "min"


@dataclass(frozen=True, slots=True)
class PerformanceRow:
    result_id: str
    values: dict[str, float]


@dataclass(frozen=True, slots=True)
class PerformanceMatrix:
    """One row per finished execution, one column per criterion."""

    job_id: str
    rows: tuple[PerformanceRow, ...]

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True, slots=True)
class RankedResult:
    result_id: str
    position: int
    score: float


@dataclass(frozen=True, slots=True)
class RankingPoll:
    state: PollState
    scores: dict[str, float] = field(default_factory=dict)
    ranking: tuple[str, ...] = ()
    weights: dict[str, float] = field(default_factory=dict)
    reason: str = ""


@dataclass(slots=True)
class RankingJob:
    id: str
    job_id: str
    method: str
    kind: JobKind
    status: ExecutionStatus = ExecutionStatus.initialized
    status_detail: str = ""
    input_rows: list[str] = field(default_factory=list)
    ranking: list[RankedResult] = field(default_factory=list)
    learned_weights: dict[str, float] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
