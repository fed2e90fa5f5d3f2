from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from nisqa.catalog.types import Binding, Implementation, Parameter, Target
from nisqa.targeting.types import CircuitInformation


class ExecutionReporter(Protocol):
    """Write side of one execution record handed to a plugin."""

    def running(self, detail: str) -> None: ...

    def finished(self, result: str, shots: int, detail: str = "Execution successfully completed.") -> None: ...

    def failed(self, detail: str) -> None: ...


class CapabilityPlugin(Protocol):
    @property
    def plugin_id(self) -> str: ...

    @property
    def display_name(self) -> str: ...

    def supported_ecosystems(self) -> Collection[str]: ...

    def required_parameters(self) -> Collection[Parameter]: ...

    def analyze(
        self, implementation: Implementation, target: Target, binding: Binding
    ) -> CircuitInformation: ...

    def execute(
        self,
        implementation: Implementation,
        target: Target,
        binding: Binding,
        reporter: ExecutionReporter,
    ) -> None: ...


@dataclass(slots=True)
class PluginBundle:
    plugins: Sequence[CapabilityPlugin] = field(default_factory=tuple)
