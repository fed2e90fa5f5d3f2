from __future__ import annotations

import logging
from collections.abc import Collection, Iterable

from nisqa.catalog.repository import Catalog
from nisqa.catalog.types import Binding, Implementation, Target
from nisqa.errors import RuleEvaluationError
from nisqa.rules.evaluator import RuleEvaluator
from nisqa.rules.params import rule_parameters
from nisqa.targeting.interfaces import CapabilityPlugin
from nisqa.targeting.registry import CapabilityRegistry
from nisqa.targeting.types import (
    CircuitInformation,
    SelectionEntry,
    SelectionIssue,
    SelectionResult,
)

LOGGER = logging.getLogger(__name__)


class CandidateFilter:
    """Selects admissible implementations of an algorithm and the targets able to run them.

    Filtering happens in three passes: the implementation's selection rule,
    the numeric qubit/depth estimates against each target's capacity, and,
    when a capability plugin serves the implementation's ecosystem, the
    measured width/depth of the circuit transpiled for each remaining target.
    Per-implementation failures never abort the selection; they are recorded
    as :class:`SelectionIssue` entries.
    """

    def __init__(
        self,
        catalog: Catalog,
        evaluator: RuleEvaluator,
        registry: CapabilityRegistry,
        *,
        exempt_simulators: bool = False,
    ) -> None:
        self.catalog = catalog
        self.evaluator = evaluator
        self.registry = registry
        self.exempt_simulators = exempt_simulators

    def required_parameters(self, algorithm_id: str) -> set[str]:
        algorithm = self.catalog.find_algorithm(algorithm_id)
        if algorithm is None:
            raise KeyError(algorithm_id)

        names = {param.name for param in algorithm.input_parameters}
        for implementation in self.catalog.find_algorithm_implementations(algorithm_id):
            names.update(param.name for param in implementation.input_parameters)
            for kind, rule in implementation.rules().items():
                try:
                    names.update(rule_parameters(rule))
                except RuleEvaluationError as exc:
                    LOGGER.warning(
                        "Cannot read the %s rule of %s: %s", kind, implementation.id, exc
                    )
            plugin = self.registry.for_ecosystem(implementation.ecosystem)
            if plugin is not None:
                names.update(param.name for param in plugin.required_parameters())
        return names

    def select(
        self,
        algorithm_id: str,
        binding: Binding,
        *,
        allowed_providers: Collection[str] | None = None,
        simulators_allowed: bool = True,
    ) -> SelectionResult:
        if self.catalog.find_algorithm(algorithm_id) is None:
            raise KeyError(algorithm_id)

        implementations = self.catalog.find_algorithm_implementations(algorithm_id)
        self.evaluator.stage(implementations)
        pool = self._target_pool(allowed_providers, simulators_allowed)

        result = SelectionResult()
        for implementation in implementations:
            entry = self._select_implementation(implementation, binding, pool, result.issues)
            if entry is not None:
                result.entries.append(entry)

        LOGGER.info(
            "Selection for %s: %d of %d implementations admissible",
            algorithm_id,
            len(result.entries),
            len(implementations),
        )
        return result

    def _target_pool(
        self, allowed_providers: Collection[str] | None, simulators_allowed: bool
    ) -> list[Target]:
        providers = None
        if allowed_providers is not None:
            providers = {provider.lower() for provider in allowed_providers}
        pool: list[Target] = []
        for target in self.catalog.find_targets():
            if providers is not None and target.provider.lower() not in providers:
                continue
            if target.simulator and not simulators_allowed:
                continue
            pool.append(target)
        return pool

    def _select_implementation(
        self,
        implementation: Implementation,
        binding: Binding,
        pool: Iterable[Target],
        issues: list[SelectionIssue],
    ) -> SelectionEntry | None:
        try:
            admissible = self.evaluator.admissible(implementation.selection_rule, binding)
        except RuleEvaluationError as exc:
            LOGGER.debug("Selection rule of %s failed: %s", implementation.id, exc)
            issues.append(SelectionIssue(implementation.id, "selection", exc.message))
            return None
        if not admissible:
            LOGGER.debug("Implementation %s rejects the binding", implementation.id)
            issues.append(
                SelectionIssue(implementation.id, "selection", "selection rule rejected the binding")
            )
            return None

        qubits = self._estimate(implementation, "width", implementation.width_rule, binding, issues)
        depth = self._estimate(implementation, "depth", implementation.depth_rule, binding, issues)

        candidates = [
            target
            for target in pool
            if target.supports(implementation.ecosystem) and self._fits(target, qubits, depth)
        ]
        if not candidates:
            LOGGER.debug(
                "No target fits %s (qubits=%d, depth=%d)", implementation.id, qubits, depth
            )
            issues.append(
                SelectionIssue(
                    implementation.id,
                    "capacity",
                    f"no target offers {qubits} qubits and depth {depth}",
                )
            )
            return None

        entry = SelectionEntry(
            implementation=implementation,
            targets=candidates,
            qubit_estimate=qubits,
            depth_estimate=depth,
        )
        plugin = self.registry.for_ecosystem(implementation.ecosystem)
        if plugin is None:
            entry.estimate_based = True
            return entry

        entry.targets = self._refine(plugin, entry, binding, issues)
        if not entry.targets:
            return None
        return entry

    def _estimate(
        self,
        implementation: Implementation,
        kind: str,
        rule: str | None,
        binding: Binding,
        issues: list[SelectionIssue],
    ) -> int:
        try:
            return self.evaluator.estimate(rule, binding)
        except RuleEvaluationError as exc:
            LOGGER.debug("The %s estimate of %s failed: %s", kind, implementation.id, exc)
            issues.append(
                SelectionIssue(implementation.id, "estimate", f"{kind} estimate failed: {exc.message}")
            )
            return 0

    def _fits(self, target: Target, width: int, depth: int) -> bool:
        if target.simulator and self.exempt_simulators:
            return True
        if width > target.qubit_count:
            return False
        max_depth = target.max_depth
        return max_depth is None or depth <= max_depth

    def _refine(
        self,
        plugin: CapabilityPlugin,
        entry: SelectionEntry,
        binding: Binding,
        issues: list[SelectionIssue],
    ) -> list[Target]:
        implementation = entry.implementation
        survivors: list[Target] = []
        for target in entry.targets:
            try:
                circuit = plugin.analyze(implementation, target, binding)
            except Exception as exc:  # plugin failures only drop the target
                LOGGER.warning(
                    "Plugin %s failed to analyze %s on %s: %s",
                    plugin.plugin_id,
                    implementation.id,
                    target.id,
                    exc,
                )
                circuit = CircuitInformation.failure(str(exc))

            if not circuit.was_successful:
                issues.append(
                    SelectionIssue(
                        implementation.id,
                        "analysis",
                        f"analysis failed: {circuit.error}",
                        target_id=target.id,
                    )
                )
                continue
            if not self._fits(target, circuit.width, circuit.depth):
                LOGGER.debug(
                    "Target %s cannot run %s (width=%d, depth=%d)",
                    target.id,
                    implementation.id,
                    circuit.width,
                    circuit.depth,
                )
                issues.append(
                    SelectionIssue(
                        implementation.id,
                        "capacity",
                        f"transpiled circuit needs {circuit.width} qubits and depth {circuit.depth}",
                        target_id=target.id,
                    )
                )
                continue
            entry.circuits[target.id] = circuit
            survivors.append(target)
        return survivors
