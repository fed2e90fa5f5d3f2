from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Literal

from nisqa.catalog.types import Implementation, Target

IssueStage = Literal["selection", "estimate", "capacity", "analysis"]

_WIRE_FIELDS = {
    "width": "width",
    "depth": "depth",
    "total-number-of-operations": "total_operations",
    "number-of-single-qubit-gates": "single_qubit_gates",
    "number-of-multi-qubit-gates": "multi_qubit_gates",
    "number-of-measurement-operations": "measurement_operations",
    "multi-qubit-gate-depth": "multi_qubit_gate_depth",
}


@dataclass(frozen=True, slots=True)
class CircuitInformation:
    """Measured properties of an implementation transpiled for one target."""

    width: int = 0
    depth: int = 0
    total_operations: int = 0
    single_qubit_gates: int = 0
    multi_qubit_gates: int = 0
    measurement_operations: int = 0
    multi_qubit_gate_depth: int = 0
    transpiled_circuit: str | None = None
    transpiled_language: str | None = None
    error: str | None = None

    @property
    def was_successful(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: str) -> CircuitInformation:
        return cls(error=error)

    @classmethod
    def from_payload(
        cls, payload: Mapping[str, object], *, language: str | None = None
    ) -> CircuitInformation:
        values: dict[str, int] = {}
        for wire_key, attr in _WIRE_FIELDS.items():
            raw = payload.get(wire_key, 0)
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                raise ValueError(f"circuit field `{wire_key}` must be a number")
            values[attr] = int(raw)

        circuit = None
        for wire_key, wire_language in (("transpiled-qasm", "openqasm"), ("transpiled-quil", "quil")):
            if payload.get(wire_key) is not None:
                circuit = payload[wire_key]
                language = language or wire_language
                break
        error = payload.get("error")
        return cls(
            transpiled_circuit=str(circuit) if circuit is not None else None,
            transpiled_language=language,
            error=str(error) if error else None,
            **values,
        )


@dataclass(frozen=True, slots=True)
class SelectionIssue:
    """Why an implementation or a target was dropped (or degraded) during selection."""

    implementation_id: str
    stage: IssueStage
    message: str
    target_id: str | None = None


@dataclass(slots=True)
class SelectionEntry:
    implementation: Implementation
    targets: list[Target]
    qubit_estimate: int = 0
    depth_estimate: int = 0
    estimate_based: bool = False
    circuits: dict[str, CircuitInformation] = field(default_factory=dict)


@dataclass(slots=True)
class SelectionResult:
    entries: list[SelectionEntry] = field(default_factory=list)
    issues: list[SelectionIssue] = field(default_factory=list)

    def as_mapping(self) -> dict[str, list[str]]:
        return {
            entry.implementation.id: [target.id for target in entry.targets]
            for entry in self.entries
        }

    def entry(self, implementation_id: str) -> SelectionEntry | None:
        for entry in self.entries:
            if entry.implementation.id == implementation_id:
                return entry
        return None
