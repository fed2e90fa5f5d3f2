from __future__ import annotations

import json
import time

import pytest

from conftest import FakePlugin
from nisqa.catalog import Implementation, InMemoryCatalog, Target, infer_binding
from nisqa.errors import NoConnectorError, RemoteServiceError
from nisqa.execution import ExecutionOrchestrator, ExecutionStatus
from nisqa.targeting import CapabilityRegistry
from nisqa.util.polling import poll_until

COUNTS = json.dumps({"counts": {"00": 512, "11": 512}})


def _orchestrator(catalog: InMemoryCatalog, plugin: FakePlugin | None, no_sleep) -> ExecutionOrchestrator:
    registry = CapabilityRegistry()
    if plugin is not None:
        registry.register_plugin(plugin)
    return ExecutionOrchestrator(
        catalog, registry, similarity_attempts=3, similarity_interval=0.1, sleep=no_sleep
    )


def _binding(catalog: InMemoryCatalog):
    implementation = catalog.find_implementation("impl1")
    assert implementation is not None
    return infer_binding(implementation.input_parameters, {"N": "15"})


def _finish(orchestrator: ExecutionOrchestrator, execution_id: str) -> ExecutionStatus:
    return orchestrator.task(execution_id).result(timeout=5)


def test_dispatch_without_plugin_creates_no_record(catalog: InMemoryCatalog, no_sleep) -> None:
    orchestrator = _orchestrator(catalog, None, no_sleep)

    with pytest.raises(NoConnectorError, match="qiskit"):
        orchestrator.dispatch("impl1", "T2", _binding(catalog))

    assert len(orchestrator.store) == 0


def test_dispatch_rejects_unknown_ids(catalog: InMemoryCatalog, no_sleep) -> None:
    orchestrator = _orchestrator(catalog, FakePlugin(), no_sleep)

    with pytest.raises(KeyError):
        orchestrator.dispatch("missing", "T2", {})
    with pytest.raises(KeyError):
        orchestrator.dispatch("impl1", "missing", {})
    assert len(orchestrator.store) == 0


def test_finished_execution_keeps_the_payload_unchanged(catalog: InMemoryCatalog, no_sleep) -> None:
    orchestrator = _orchestrator(catalog, FakePlugin(payloads={"T2": COUNTS}), no_sleep)

    execution_id = orchestrator.dispatch("impl1", "T2", _binding(catalog))

    assert _finish(orchestrator, execution_id) is ExecutionStatus.finished
    record = orchestrator.get_execution_status(execution_id)
    assert record.status is ExecutionStatus.finished
    assert record.shots == 1024
    assert record.result == COUNTS
    assert record.status_detail == "Execution successfully completed."
    assert record.binding == {"N": "15"}


def test_plugin_reported_failure_is_kept(catalog: InMemoryCatalog, no_sleep) -> None:
    def behaviour(implementation, target, binding, reporter) -> None:
        reporter.running("queued")
        reporter.failed("Connection to fake backend failed.")
        reporter.finished(COUNTS, 1024)

    orchestrator = _orchestrator(catalog, FakePlugin(behaviour=behaviour), no_sleep)
    execution_id = orchestrator.dispatch("impl1", "T2", _binding(catalog))

    assert _finish(orchestrator, execution_id) is ExecutionStatus.failed
    record = orchestrator.get_execution_status(execution_id)
    assert record.status_detail == "Connection to fake backend failed."
    assert record.result == ""


@pytest.mark.parametrize(
    ("error", "detail"),
    [
        (RemoteServiceError("poll: remote answered HTTP 500"), "Execution failed: poll: remote answered HTTP 500"),
        (RuntimeError("segfault"), "Plugin fake crashed: segfault"),
    ],
)
def test_plugin_exceptions_fail_the_execution(
    catalog: InMemoryCatalog, no_sleep, error: Exception, detail: str
) -> None:
    def behaviour(implementation, target, binding, reporter) -> None:
        reporter.running("queued")
        raise error

    orchestrator = _orchestrator(catalog, FakePlugin(behaviour=behaviour), no_sleep)
    execution_id = orchestrator.dispatch("impl1", "T2", _binding(catalog))

    assert _finish(orchestrator, execution_id) is ExecutionStatus.failed
    assert orchestrator.get_execution_status(execution_id).status_detail == detail


def test_plugin_returning_early_fails_the_execution(catalog: InMemoryCatalog, no_sleep) -> None:
    def behaviour(implementation, target, binding, reporter) -> None:
        reporter.running("queued")

    orchestrator = _orchestrator(catalog, FakePlugin(behaviour=behaviour), no_sleep)
    execution_id = orchestrator.dispatch("impl1", "T2", _binding(catalog))

    assert _finish(orchestrator, execution_id) is ExecutionStatus.failed
    assert (
        orchestrator.get_execution_status(execution_id).status_detail
        == "Plugin fake returned without a final status."
    )


def _with_simulator(catalog: InMemoryCatalog) -> InMemoryCatalog:
    catalog.add_target(
        Target(
            id="SIM",
            name="qasm_simulator",
            provider="ibmq",
            qubit_count=32,
            simulator=True,
            ecosystems=frozenset({"qiskit"}),
        )
    )
    return catalog


def test_hardware_run_is_compared_with_the_simulator_run(catalog: InMemoryCatalog, no_sleep) -> None:
    plugin = FakePlugin(
        payloads={
            "SIM": COUNTS,
            "T2": json.dumps({"counts": {"00": 400, "11": 500, "01": 124}}),
        }
    )
    orchestrator = _orchestrator(_with_simulator(catalog), plugin, no_sleep)
    binding = _binding(catalog)

    simulated = orchestrator.dispatch("impl1", "SIM", binding, context_id="ctx")
    _finish(orchestrator, simulated)
    hardware = orchestrator.dispatch("impl1", "T2", binding, context_id="ctx")
    _finish(orchestrator, hardware)

    assert orchestrator.get_execution_status(simulated).histogram_intersection == 1.0
    assert orchestrator.get_execution_status(hardware).histogram_intersection == pytest.approx(900 / 1024)


def test_similarity_needs_a_simulator_run_of_the_same_implementation(
    catalog: InMemoryCatalog, no_sleep
) -> None:
    catalog.add_implementation(
        Implementation(id="impl3", name="other", algorithm_id="factor", ecosystem="qiskit")
    )
    orchestrator = _orchestrator(_with_simulator(catalog), FakePlugin(), no_sleep)
    binding = _binding(catalog)

    simulated = orchestrator.dispatch("impl3", "SIM", binding, context_id="ctx")
    _finish(orchestrator, simulated)
    hardware = orchestrator.dispatch("impl1", "T2", binding, context_id="ctx")
    _finish(orchestrator, hardware)
    uncontextual = orchestrator.dispatch("impl1", "T2", binding)
    _finish(orchestrator, uncontextual)

    assert orchestrator.get_execution_status(hardware).histogram_intersection is None
    assert orchestrator.get_execution_status(uncontextual).histogram_intersection is None


def test_simulator_run_dispatched_later_is_still_compared(catalog: InMemoryCatalog) -> None:
    plugin = FakePlugin(
        payloads={
            "SIM": COUNTS,
            "T2": json.dumps({"counts": {"00": 400, "11": 500, "01": 124}}),
        }
    )
    binding = _binding(catalog)
    simulated: list[str] = []

    def dispatch_simulator_on_first_wait(_seconds: float) -> None:
        if not simulated:
            simulated.append(orchestrator.dispatch("impl1", "SIM", binding, context_id="ctx"))
            _finish(orchestrator, simulated[0])

    orchestrator = _orchestrator(_with_simulator(catalog), plugin, dispatch_simulator_on_first_wait)

    hardware = orchestrator.dispatch("impl1", "T2", binding, context_id="ctx")
    _finish(orchestrator, hardware)

    assert len(simulated) == 1
    assert orchestrator.get_execution_status(hardware).histogram_intersection == pytest.approx(900 / 1024)


def test_finished_executions_release_their_task(catalog: InMemoryCatalog, no_sleep) -> None:
    orchestrator = _orchestrator(catalog, FakePlugin(), no_sleep)

    execution_id = orchestrator.dispatch("impl1", "T2", _binding(catalog))
    _finish(orchestrator, execution_id)

    assert poll_until(lambda: orchestrator._tasks == {} or None, interval=0.01, attempts=500, sleep=time.sleep)
    assert _finish(orchestrator, execution_id) is ExecutionStatus.finished
