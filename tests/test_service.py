from __future__ import annotations

import pytest

from conftest import FakePlugin, scenario_catalog
from nisqa.catalog import Implementation
from nisqa.config import NisqaConfig, PluginsConfig, RuleEngine, RulesConfig
from nisqa.errors import ConfigurationError, RuleEvaluationError
from nisqa.execution import ExecutionStatus
from nisqa.rules import ExpressionOracle, HttpRuleOracle, RuleSet
from nisqa.service import build_oracle, build_service
from nisqa.targeting import PluginBundle

CONFIG = NisqaConfig(plugins=PluginsConfig(entry_points=False))


class _RecordingOracle(ExpressionOracle):
    def __init__(self) -> None:
        super().__init__()
        self.registered: list[str] = []

    def activate(self, rule_set: RuleSet) -> None:
        self.registered.append(rule_set.id)
        super().activate(rule_set)


def test_build_oracle_follows_the_rules_engine() -> None:
    assert isinstance(build_oracle(NisqaConfig()), ExpressionOracle)
    remote = NisqaConfig(rules=RulesConfig(engine=RuleEngine.remote, url="http://rules.test"))
    oracle = build_oracle(remote)
    assert isinstance(oracle, HttpRuleOracle)
    assert oracle.client.base_url == "http://rules.test"


def test_catalog_changes_reach_the_oracle_through_events(no_sleep) -> None:
    catalog = scenario_catalog()
    oracle = _RecordingOracle()
    service = build_service(CONFIG, catalog, oracle=oracle, sleep=no_sleep)

    assert service.sync_rules() == 2
    catalog.add_implementation(
        Implementation(
            id="impl3", name="QFT based", algorithm_id="factor", ecosystem="qiskit", selection_rule="N > 3"
        )
    )
    catalog.remove_implementation("impl1")

    assert service.sync_rules() == 2
    assert service.sync_rules() == 0
    assert oracle.registered == ["impl1", "impl2", "impl3"]
    assert oracle.active_rule_sets() == ["impl2", "impl3"]


class _RejectingOracle(ExpressionOracle):
    def activate(self, rule_set: RuleSet) -> None:
        if rule_set.id == "impl3":
            raise RuleEvaluationError("rule engine rejected rule set `impl3` (HTTP 400)")
        super().activate(rule_set)


def test_rejected_rule_set_does_not_abort_the_selection(no_sleep, caplog) -> None:
    catalog = scenario_catalog()
    oracle = _RejectingOracle()
    service = build_service(CONFIG, catalog, oracle=oracle, sleep=no_sleep)
    service.sync_rules()
    catalog.add_implementation(
        Implementation(
            id="impl3", name="QFT based", algorithm_id="factor", ecosystem="qiskit", selection_rule="N > 3"
        )
    )
    catalog.add_implementation(
        Implementation(id="impl4", name="Period finding", algorithm_id="factor", ecosystem="qiskit")
    )

    selection = service.select("factor", {"N": "15", "L": "1"})

    assert selection.as_mapping()["impl1"] == ["T2"]
    assert selection.as_mapping()["impl2"] == ["T1", "T2"]
    assert oracle.active_rule_sets() == ["impl1", "impl2", "impl4"]
    assert any("impl3 was not applied" in record.getMessage() for record in caplog.records)


def test_parameters_are_typed_from_declarations(no_sleep) -> None:
    service = build_service(CONFIG, scenario_catalog(), sleep=no_sleep)

    binding = service.binding_for_algorithm("factor", {"N": "15", "L": "2", "extra": "x"})

    assert {name: value.type.value for name, value in binding.items()} == {
        "N": "integer",
        "L": "integer",
        "extra": "unknown",
    }
    assert service.required_parameters("factor") == {"N", "L"}


def test_selection_can_be_dispatched_as_one_context(no_sleep) -> None:
    service = build_service(
        CONFIG, scenario_catalog(), bundles=[PluginBundle(plugins=[FakePlugin()])], sleep=no_sleep
    )
    values = {"N": "15", "L": "1"}

    selection = service.select("factor", values)
    context_id, execution_ids = service.dispatch_selection(selection, values)

    assert selection.as_mapping() == {"impl1": ["T2"], "impl2": ["T1", "T2"]}
    assert service.wait(timeout=5)
    records = [service.get_execution_status(execution_id) for execution_id in execution_ids]
    assert [(r.implementation_id, r.target_id) for r in records] == [
        ("impl1", "T2"),
        ("impl2", "T1"),
        ("impl2", "T2"),
    ]
    assert {r.status for r in records} == {ExecutionStatus.finished}
    assert {r.context_id for r in records} == {context_id}
    assert all(r.circuit is not None and r.circuit.width == 1 for r in records)


def test_ranking_without_service_is_a_configuration_error(no_sleep) -> None:
    service = build_service(CONFIG, scenario_catalog(), sleep=no_sleep)

    with pytest.raises(ConfigurationError):
        service.rank("job", {"width": 1.0})
    with pytest.raises(KeyError):
        service.get_ranking("missing")
