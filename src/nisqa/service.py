from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Collection, Iterable, Mapping

from nisqa.catalog.binding import infer_binding
from nisqa.catalog.events import RuleRegistrationSubscriber
from nisqa.catalog.repository import InMemoryCatalog
from nisqa.catalog.types import Binding, Parameter
from nisqa.config.types import NisqaConfig, RuleEngine
from nisqa.execution.orchestrator import ExecutionOrchestrator
from nisqa.execution.tasks import TaskSupervisor
from nisqa.execution.types import ExecutionResult
from nisqa.ranking.client import HttpRankingService, RankingService
from nisqa.ranking.pipeline import RankingPipeline
from nisqa.ranking.types import RankingJob
from nisqa.rules.evaluator import RuleEvaluator
from nisqa.rules.expressions import ExpressionOracle
from nisqa.rules.interfaces import RuleOracle
from nisqa.rules.remote import HttpRuleOracle
from nisqa.targeting.filter import CandidateFilter
from nisqa.targeting.interfaces import PluginBundle
from nisqa.targeting.plugins import service_plugin_bundle
from nisqa.targeting.registry import CapabilityRegistry
from nisqa.targeting.types import SelectionResult
from nisqa.util.http import HttpClient

LOGGER = logging.getLogger(__name__)


class SelectionService:
    """Entry point tying selection, dispatch and ranking together.

    Raw parameter values arrive as strings and are typed against the
    declarations of the algorithm and its implementations.
    """

    def __init__(
        self,
        catalog: InMemoryCatalog,
        evaluator: RuleEvaluator,
        registry: CapabilityRegistry,
        candidate_filter: CandidateFilter,
        orchestrator: ExecutionOrchestrator,
        ranking: RankingPipeline,
    ) -> None:
        self.catalog = catalog
        self.evaluator = evaluator
        self.registry = registry
        self.filter = candidate_filter
        self.orchestrator = orchestrator
        self.ranking = ranking
        self.subscriber = RuleRegistrationSubscriber(catalog.events, evaluator)

    def sync_rules(self) -> int:
        """Register the rules of implementations added since the last call."""
        return self.subscriber.drain()

    def required_parameters(self, algorithm_id: str) -> set[str]:
        return self.filter.required_parameters(algorithm_id)

    def binding_for_algorithm(self, algorithm_id: str, values: Mapping[str, str]) -> Binding:
        declared: list[Parameter] = []
        algorithm = self.catalog.find_algorithm(algorithm_id)
        if algorithm is not None:
            declared.extend(algorithm.input_parameters)
        for implementation in self.catalog.find_algorithm_implementations(algorithm_id):
            declared.extend(implementation.input_parameters)
        return infer_binding(declared, values)

    def select(
        self,
        algorithm_id: str,
        values: Mapping[str, str],
        *,
        allowed_providers: Collection[str] | None = None,
        simulators_allowed: bool = True,
    ) -> SelectionResult:
        self.sync_rules()
        binding = self.binding_for_algorithm(algorithm_id, values)
        return self.filter.select(
            algorithm_id,
            binding,
            allowed_providers=allowed_providers,
            simulators_allowed=simulators_allowed,
        )

    def dispatch(
        self,
        implementation_id: str,
        target_id: str,
        values: Mapping[str, str],
        *,
        context_id: str | None = None,
    ) -> str:
        implementation = self.catalog.find_implementation(implementation_id)
        if implementation is None:
            raise KeyError(implementation_id)
        binding = self.binding_for_algorithm(implementation.algorithm_id, values)
        return self.orchestrator.dispatch(implementation_id, target_id, binding, context_id=context_id)

    def dispatch_selection(
        self, selection: SelectionResult, values: Mapping[str, str]
    ) -> tuple[str, list[str]]:
        """Dispatch every (implementation, target) pair of a selection under one context id."""
        context_id = uuid.uuid4().hex
        execution_ids: list[str] = []
        for entry in selection.entries:
            implementation = entry.implementation
            binding = self.binding_for_algorithm(implementation.algorithm_id, values)
            for target in entry.targets:
                execution_ids.append(
                    self.orchestrator.dispatch(
                        implementation.id,
                        target.id,
                        binding,
                        context_id=context_id,
                        circuit=entry.circuits.get(target.id),
                    )
                )
        LOGGER.info("Dispatched %d executions under context %s", len(execution_ids), context_id)
        return context_id, execution_ids

    def get_execution_status(self, execution_id: str) -> ExecutionResult:
        return self.orchestrator.get_execution_status(execution_id)

    def rank(self, job_id: str, weights: Mapping[str, float], method: str | None = None) -> str:
        return self.ranking.rank(job_id, weights, method)

    def learn_weights(self, job_id: str, method: str | None = None) -> str:
        return self.ranking.learn_weights(job_id, method)

    def get_ranking(self, ranking_id: str) -> RankingJob:
        return self.ranking.get_ranking(ranking_id)

    def wait(self, timeout: float | None = None) -> bool:
        return self.orchestrator.supervisor.wait(timeout)


def build_oracle(config: NisqaConfig) -> RuleOracle:
    if config.rules.engine is RuleEngine.remote:
        assert config.rules.url is not None
        return HttpRuleOracle(HttpClient(config.rules.url, timeout=config.rules.timeout))
    return ExpressionOracle()


def build_service(
    config: NisqaConfig,
    catalog: InMemoryCatalog,
    *,
    oracle: RuleOracle | None = None,
    bundles: Iterable[PluginBundle] = (),
    ranking_service: RankingService | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> SelectionService:
    evaluator = RuleEvaluator(oracle or build_oracle(config))
    registry = CapabilityRegistry.from_discovery(
        bundles=[service_plugin_bundle(config.plugins.services, sleep=sleep), *bundles],
        module_specs=list(config.plugins.modules),
        entry_points=config.plugins.entry_points,
    )
    supervisor = TaskSupervisor()
    candidate_filter = CandidateFilter(
        catalog,
        evaluator,
        registry,
        exempt_simulators=config.selection.exempt_simulators,
    )
    orchestrator = ExecutionOrchestrator(
        catalog,
        registry,
        supervisor=supervisor,
        similarity_attempts=config.execution.similarity_attempts,
        similarity_interval=config.execution.similarity_interval,
        sleep=sleep,
    )
    if ranking_service is None and config.ranking.url is not None:
        ranking_service = HttpRankingService(
            HttpClient(config.ranking.url, timeout=config.ranking.timeout)
        )
    ranking = RankingPipeline(
        orchestrator.store,
        catalog,
        ranking_service,
        supervisor=supervisor,
        default_method=config.ranking.method,
        learning_method=config.ranking.learning_method,
        poll_interval=config.ranking.poll_interval,
        sleep=sleep,
    )
    LOGGER.debug(
        "Service ready: %d plugins, rule engine %s", len(registry.list_plugins()), config.rules.engine.value
    )
    return SelectionService(catalog, evaluator, registry, candidate_filter, orchestrator, ranking)
