from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Mapping
from dataclasses import replace

from nisqa.errors import InvalidTransitionError
from nisqa.execution.types import ExecutionResult, ExecutionStatus
from nisqa.targeting.types import CircuitInformation

LOGGER = logging.getLogger(__name__)


class ExecutionStore:
    """Lock-guarded home of every execution record.

    Readers always receive copies; all writes go through this class, and
    status changes through :meth:`transition`, which only moves forward.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[str, ExecutionResult] = {}

    def create(
        self,
        implementation_id: str,
        target_id: str,
        binding: Mapping[str, str],
        *,
        detail: str = "",
        context_id: str | None = None,
        circuit: CircuitInformation | None = None,
    ) -> ExecutionResult:
        record = ExecutionResult(
            id=uuid.uuid4().hex,
            implementation_id=implementation_id,
            target_id=target_id,
            status_detail=detail,
            context_id=context_id,
            circuit=circuit,
            binding=dict(binding),
        )
        with self._lock:
            self._records[record.id] = record
            return replace(record)

    def get(self, execution_id: str) -> ExecutionResult:
        with self._lock:
            record = self._records.get(execution_id)
            if record is None:
                raise KeyError(execution_id)
            return replace(record)

    def transition(
        self,
        execution_id: str,
        status: ExecutionStatus,
        detail: str,
        *,
        result: str | None = None,
        shots: int | None = None,
    ) -> ExecutionResult:
        with self._lock:
            record = self._records.get(execution_id)
            if record is None:
                raise KeyError(execution_id)
            current = record.status
            if current.terminal:
                raise InvalidTransitionError(
                    f"execution {execution_id} is already {current.value}"
                )
            if status.rank < current.rank or (
                status.rank == current.rank and status is not ExecutionStatus.running
            ):
                raise InvalidTransitionError(
                    f"execution {execution_id} cannot move from {current.value} to {status.value}"
                )
            record.status = status
            record.status_detail = detail
            if result is not None:
                record.result = result
            if shots is not None:
                record.shots = shots
            LOGGER.debug("Execution %s: %s -> %s", execution_id, current.value, status.value)
            return replace(record)

    def set_similarity(self, execution_id: str, score: float) -> None:
        with self._lock:
            record = self._records.get(execution_id)
            if record is None:
                raise KeyError(execution_id)
            record.histogram_intersection = score

    def find_by_context(self, context_id: str) -> list[ExecutionResult]:
        with self._lock:
            return [
                replace(record)
                for record in self._records.values()
                if record.context_id == context_id
            ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
