from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent import futures
from typing import Any

from nisqa.catalog.binding import binding_to_strings
from nisqa.catalog.repository import Catalog
from nisqa.catalog.types import Binding, Implementation, Target
from nisqa.errors import InvalidTransitionError, NisqaError
from nisqa.execution.similarity import histogram_intersection, parse_counts
from nisqa.execution.store import ExecutionStore
from nisqa.execution.tasks import TaskSupervisor, completed
from nisqa.execution.types import ExecutionResult, ExecutionStatus
from nisqa.targeting.interfaces import CapabilityPlugin
from nisqa.targeting.registry import CapabilityRegistry
from nisqa.targeting.types import CircuitInformation
from nisqa.util.polling import poll_until

LOGGER = logging.getLogger(__name__)


class StoreReporter:
    """Reporter handed to plugins; writes transitions for one execution."""

    def __init__(self, store: ExecutionStore, execution_id: str) -> None:
        self._store = store
        self.execution_id = execution_id

    def running(self, detail: str) -> None:
        self._write(ExecutionStatus.running, detail)

    def finished(self, result: str, shots: int, detail: str = "Execution successfully completed.") -> None:
        self._write(ExecutionStatus.finished, detail, result=result, shots=shots)

    def failed(self, detail: str) -> None:
        self._write(ExecutionStatus.failed, detail)

    def _write(self, status: ExecutionStatus, detail: str, **fields: Any) -> None:
        try:
            self._store.transition(self.execution_id, status, detail, **fields)
        except InvalidTransitionError as exc:
            LOGGER.warning("Ignoring late write to execution %s: %s", self.execution_id, exc)


class ExecutionOrchestrator:
    """Dispatches implementations to capability plugins and tracks the executions."""

    def __init__(
        self,
        catalog: Catalog,
        registry: CapabilityRegistry,
        *,
        store: ExecutionStore | None = None,
        supervisor: TaskSupervisor | None = None,
        similarity_attempts: int = 60,
        similarity_interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.catalog = catalog
        self.registry = registry
        self.store = store or ExecutionStore()
        self.supervisor = supervisor or TaskSupervisor()
        self.similarity_attempts = similarity_attempts
        self.similarity_interval = similarity_interval
        self._sleep = sleep
        self._tasks: dict[str, futures.Future[Any]] = {}

    def dispatch(
        self,
        implementation_id: str,
        target_id: str,
        binding: Binding,
        *,
        context_id: str | None = None,
        circuit: CircuitInformation | None = None,
    ) -> str:
        implementation = self.catalog.find_implementation(implementation_id)
        if implementation is None:
            raise KeyError(implementation_id)
        target = self.catalog.find_target_by_id(target_id)
        if target is None:
            raise KeyError(target_id)
        plugin = self.registry.require(implementation.ecosystem)

        record = self.store.create(
            implementation.id,
            target.id,
            binding_to_strings(binding),
            detail="Passing execution to executor plugin.",
            context_id=context_id,
            circuit=circuit,
        )
        LOGGER.info(
            "Dispatching %s to %s with plugin %s (execution %s)",
            implementation.id,
            target.id,
            plugin.plugin_id,
            record.id,
        )
        future = self.supervisor.submit(
            f"execution-{record.id[:8]}",
            self._run,
            record.id,
            plugin,
            implementation,
            target,
            binding,
        )
        self._tasks[record.id] = future
        future.add_done_callback(lambda _: self._tasks.pop(record.id, None))
        return record.id

    def get_execution_status(self, execution_id: str) -> ExecutionResult:
        return self.store.get(execution_id)

    def task(self, execution_id: str) -> futures.Future[Any]:
        future = self._tasks.get(execution_id)
        if future is None:
            return completed(self.store.get(execution_id).status)
        return future

    def _run(
        self,
        execution_id: str,
        plugin: CapabilityPlugin,
        implementation: Implementation,
        target: Target,
        binding: Binding,
    ) -> ExecutionStatus:
        reporter = StoreReporter(self.store, execution_id)
        try:
            plugin.execute(implementation, target, binding, reporter)
        except NisqaError as exc:
            LOGGER.warning("Execution %s failed: %s", execution_id, exc.message)
            reporter.failed(f"Execution failed: {exc.message}")
        except Exception as exc:
            LOGGER.exception("Plugin %s crashed during execution %s", plugin.plugin_id, execution_id)
            reporter.failed(f"Plugin {plugin.plugin_id} crashed: {exc}")

        record = self.store.get(execution_id)
        if not record.status.terminal:
            LOGGER.warning("Plugin %s left execution %s unfinished", plugin.plugin_id, execution_id)
            reporter.failed(f"Plugin {plugin.plugin_id} returned without a final status.")
            record = self.store.get(execution_id)

        if record.status is ExecutionStatus.finished:
            self._compare_with_simulator(record, target)
        LOGGER.info("Execution %s ended %s", execution_id, record.status.value)
        return record.status

    def _compare_with_simulator(self, record: ExecutionResult, target: Target) -> None:
        if target.simulator:
            self.store.set_similarity(record.id, 1.0)
            return
        if record.context_id is None:
            return

        def fetch() -> ExecutionResult | None:
            # the simulator run may be dispatched after this one
            reference = self._simulator_counterpart(record)
            if reference is None or not reference.status.terminal:
                return None
            return reference

        done = poll_until(
            fetch,
            interval=self.similarity_interval,
            attempts=self.similarity_attempts,
            sleep=self._sleep,
        )
        if done is None or done.status is not ExecutionStatus.finished:
            LOGGER.debug("No finished simulator run to compare execution %s with", record.id)
            return

        counts = parse_counts(record.result)
        reference_counts = parse_counts(done.result)
        if counts is None or reference_counts is None:
            LOGGER.debug("Cannot read counts for execution %s or %s", record.id, done.id)
            return
        score = histogram_intersection(counts, reference_counts, done.shots)
        if score is not None:
            self.store.set_similarity(record.id, score)
            LOGGER.debug("Execution %s histogram intersection %.4f", record.id, score)

    def _simulator_counterpart(self, record: ExecutionResult) -> ExecutionResult | None:
        assert record.context_id is not None
        for other in self.store.find_by_context(record.context_id):
            if other.id == record.id or other.implementation_id != record.implementation_id:
                continue
            target = self.catalog.find_target_by_id(other.target_id)
            if target is not None and target.simulator:
                return other
        return None
