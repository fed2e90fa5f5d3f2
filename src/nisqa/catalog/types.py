from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum


class DataType(str, Enum):
    integer = "integer"
    float = "float"
    string = "string"
    boolean = "boolean"
    unknown = "unknown"


@dataclass(frozen=True, slots=True)
class Parameter:
    name: str
    type: DataType = DataType.unknown
    description: str = ""


@dataclass(frozen=True, slots=True)
class ParameterValue:
    name: str
    type: DataType
    raw: str


Binding = Mapping[str, ParameterValue]


@dataclass(frozen=True, slots=True)
class Algorithm:
    id: str
    name: str
    input_parameters: tuple[Parameter, ...] = ()


@dataclass(frozen=True, slots=True)
class Implementation:
    id: str
    name: str
    algorithm_id: str
    ecosystem: str
    file_location: str = ""
    selection_rule: str | None = None
    width_rule: str | None = None
    depth_rule: str | None = None
    input_parameters: tuple[Parameter, ...] = ()
    output_parameters: tuple[Parameter, ...] = ()

    def rules(self) -> dict[str, str]:
        rules: dict[str, str] = {}
        if self.selection_rule is not None:
            rules["selection"] = self.selection_rule
        if self.width_rule is not None:
            rules["width"] = self.width_rule
        if self.depth_rule is not None:
            rules["depth"] = self.depth_rule
        return rules


@dataclass(frozen=True, slots=True)
class Target:
    """An execution backend ("QPU") and the figures used to filter and rank it.

    ``t1`` is the decoherence time and ``max_gate_time`` the slowest gate time,
    both in the same unit. The admissible circuit depth is derived from them.
    """

    id: str
    name: str
    provider: str
    qubit_count: int
    t1: float = 0.0
    max_gate_time: float = 0.0
    simulator: bool = False
    ecosystems: frozenset[str] = field(default_factory=frozenset)
    queue_size: int = 0
    t2: float = 0.0
    avg_readout_error: float = 0.0
    avg_single_qubit_gate_error: float = 0.0
    avg_multi_qubit_gate_error: float = 0.0
    avg_multi_qubit_gate_time: float = 0.0

    def __post_init__(self) -> None:
        if self.qubit_count < 0:
            raise ValueError(f"target `{self.id}` has a negative qubit count")

    @property
    def max_depth(self) -> int | None:
        """Largest circuit depth that fits the decoherence time, ``None`` if unbounded."""
        if self.max_gate_time <= 0:
            return None
        return math.floor(self.t1 / self.max_gate_time)

    def supports(self, ecosystem: str) -> bool:
        return ecosystem.lower() in {name.lower() for name in self.ecosystems}

    def refreshed(self, **figures: float | int) -> Target:
        allowed = {
            "queue_size",
            "t1",
            "t2",
            "max_gate_time",
            "avg_readout_error",
            "avg_single_qubit_gate_error",
            "avg_multi_qubit_gate_error",
            "avg_multi_qubit_gate_time",
        }
        unknown = sorted(set(figures) - allowed)
        if unknown:
            raise ValueError(f"cannot refresh target figures: {', '.join(unknown)}")
        return replace(self, **figures)
