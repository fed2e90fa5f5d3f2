from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field

import pytest

from nisqa.catalog import Algorithm, DataType, Implementation, InMemoryCatalog, Parameter, Target
from nisqa.targeting.types import CircuitInformation


@dataclass(slots=True)
class FakePlugin:
    plugin_id: str = "fake"
    display_name: str = "Fake Plugin"
    ecosystems: tuple[str, ...] = ("qiskit",)
    parameters: tuple[Parameter, ...] = ()
    circuits: dict[str, CircuitInformation] = field(default_factory=dict)
    payloads: dict[str, str] = field(default_factory=dict)
    shots: int = 1024
    behaviour: Callable[..., None] | None = None
    analyzed: list[str] = field(default_factory=list)

    def supported_ecosystems(self):
        return self.ecosystems

    def required_parameters(self):
        return self.parameters

    def analyze(self, implementation, target, binding):
        _ = binding
        self.analyzed.append(f"{implementation.id}@{target.id}")
        return self.circuits.get(target.id, CircuitInformation(width=1, depth=1))

    def execute(self, implementation, target, binding, reporter):
        if self.behaviour is not None:
            self.behaviour(implementation, target, binding, reporter)
            return
        reporter.running("Pending for execution on fake backend ...")
        payload = self.payloads.get(target.id, json.dumps({"counts": {"00": 512, "11": 512}}))
        reporter.finished(payload, self.shots)


def scenario_catalog() -> InMemoryCatalog:
    """Algorithm `factor` with one exact and one generic implementation.

    T1 has 7 qubits and unbounded depth; T2 has 15 qubits and a maximum
    depth of 50000 / 1000 = 50.
    """
    n = Parameter(name="N", type=DataType.integer, description="number to factor")
    return InMemoryCatalog(
        algorithms=[Algorithm(id="factor", name="Factoring", input_parameters=(n,))],
        implementations=[
            Implementation(
                id="impl1",
                name="Shor for 15",
                algorithm_id="factor",
                ecosystem="qiskit",
                selection_rule="N == 15",
                width_rule="8",
                depth_rule="7",
                input_parameters=(n,),
            ),
            Implementation(
                id="impl2",
                name="Generic Shor",
                algorithm_id="factor",
                ecosystem="qiskit",
                selection_rule="N > 2",
                width_rule="2 * L + 3",
                input_parameters=(n, Parameter(name="L", type=DataType.integer)),
            ),
        ],
        targets=[
            Target(id="T1", name="t1", provider="ibmq", qubit_count=7, ecosystems=frozenset({"qiskit"})),
            Target(
                id="T2",
                name="t2",
                provider="ibmq",
                qubit_count=15,
                t1=50000,
                max_gate_time=1000,
                ecosystems=frozenset({"qiskit"}),
            ),
        ],
    )


@pytest.fixture
def catalog() -> InMemoryCatalog:
    return scenario_catalog()


@pytest.fixture
def no_sleep() -> Callable[[float], None]:
    def _sleep(_seconds: float) -> None:
        return None

    return _sleep
