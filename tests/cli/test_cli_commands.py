from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest
from typer.testing import CliRunner

from nisqa.cli import app

ENV = {"COLUMNS": "200"}

PLUGIN_MODULE = '''
from nisqa.targeting.interfaces import PluginBundle
from nisqa.targeting.types import CircuitInformation


class EchoPlugin:
    plugin_id = "echo"
    display_name = "Echo backend"

    def supported_ecosystems(self):
        return ("qiskit",)

    def required_parameters(self):
        return ()

    def analyze(self, implementation, target, binding):
        return CircuitInformation(width=4, depth=9)

    def execute(self, implementation, target, binding, reporter):
        reporter.running("Pending for execution on Echo backend ...")
        reporter.finished('{"counts": {"00": 10}}', 10)


def plugin_bundle():
    return PluginBundle(plugins=[EchoPlugin()])
'''


def _catalog_payload() -> dict[str, object]:
    return {
        "algorithms": [
            {"id": "shor", "name": "Shor", "input_parameters": [{"name": "N", "type": "integer"}]}
        ],
        "implementations": [
            {
                "id": "shor-15",
                "algorithm": "shor",
                "ecosystem": "Qiskit",
                "selection_rule": "N == 15",
                "width_rule": "8",
                "depth_rule": "depth_factor * N",
            }
        ],
        "targets": [
            {"id": "ibmq-lima", "provider": "ibmq", "qubit_count": 5, "ecosystems": ["qiskit"]},
            {
                "id": "ibmq-qasm",
                "provider": "ibmq",
                "qubit_count": 32,
                "simulator": True,
                "ecosystems": ["qiskit"],
            },
        ],
    }


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    (tmp_path / "catalog.json").write_text(json.dumps(_catalog_payload()), encoding="utf-8")
    (tmp_path / "nisqa.toml").write_text(
        textwrap.dedent(
            """
            schema_version = "1"

            [plugins]
            entry_points = false
            """
        ),
        encoding="utf-8",
    )
    (tmp_path / "cli_echo_plugins.py").write_text(PLUGIN_MODULE, encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    monkeypatch.syspath_prepend(str(tmp_path))
    return tmp_path


def _with_plugin(workspace: Path) -> None:
    (workspace / "nisqa.toml").write_text(
        textwrap.dedent(
            """
            schema_version = "1"

            [plugins]
            entry_points = false
            modules = ["cli_echo_plugins:plugin_bundle"]
            """
        ),
        encoding="utf-8",
    )


def test_root_without_command_prints_welcome() -> None:
    result = CliRunner().invoke(app, [], env=ENV)

    assert result.exit_code == 0
    assert "Welcome to nisqa" in result.stdout
    assert "Quick Start" in result.stdout


def test_catalog_show_json_lists_entities(workspace: Path) -> None:
    result = CliRunner().invoke(app, ["catalog", "show", "catalog.json", "--json"], env=ENV)

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert [impl["id"] for impl in payload["implementations"]] == ["shor-15"]
    assert [target["id"] for target in payload["targets"]] == ["ibmq-lima", "ibmq-qasm"]


def test_catalog_show_table_reports_unbounded_depth(workspace: Path) -> None:
    result = CliRunner().invoke(app, ["catalog", "show", "catalog.json"], env=ENV)

    assert result.exit_code == 0
    assert "unbounded" in result.stdout
    assert "N == 15" in result.stdout


def test_catalog_check_warns_about_undeclared_rule_parameters(workspace: Path) -> None:
    result = CliRunner().invoke(app, ["catalog", "check", "catalog.json"], env=ENV)

    assert result.exit_code == 0
    assert "warning[NISQA4101]" in result.stdout
    assert "depth_factor" in result.stdout


def test_unreadable_catalog_is_reported(workspace: Path) -> None:
    (workspace / "broken.json").write_text("{", encoding="utf-8")

    result = CliRunner().invoke(app, ["catalog", "show", "broken.json"], env=ENV)

    assert result.exit_code == 1
    assert "NISQA4002" in result.stdout


def test_params_lists_rule_and_declared_names(workspace: Path) -> None:
    result = CliRunner().invoke(app, ["params", "catalog.json", "shor", "--json"], env=ENV)

    assert result.exit_code == 0
    assert json.loads(result.stdout) == ["N", "depth_factor"]


def test_params_for_unknown_algorithm_fails(workspace: Path) -> None:
    result = CliRunner().invoke(app, ["params", "catalog.json", "grover"], env=ENV)

    assert result.exit_code == 1
    assert "NISQA4003" in result.stdout
    assert "grover" in result.stdout


def test_select_json_reports_entries_and_issues(workspace: Path) -> None:
    result = CliRunner().invoke(app, ["select", "catalog.json", "shor", "-p", "N=15", "--json"], env=ENV)

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["entries"][0]["implementation"] == "shor-15"
    assert payload["entries"][0]["targets"] == ["ibmq-qasm"]
    assert payload["entries"][0]["estimate_based"] is True
    assert [issue["stage"] for issue in payload["issues"]] == ["estimate"]


def test_select_without_simulators_reports_capacity(workspace: Path) -> None:
    result = CliRunner().invoke(
        app, ["select", "catalog.json", "shor", "-p", "N=15", "--no-simulators"], env=ENV
    )

    assert result.exit_code == 0
    assert "capacity" in result.stdout
    assert "no target offers 8 qubits" in result.stdout


def test_select_with_plugin_uses_transpiled_figures(workspace: Path) -> None:
    _with_plugin(workspace)

    result = CliRunner().invoke(app, ["select", "catalog.json", "shor", "-p", "N=15", "--json"], env=ENV)

    assert result.exit_code == 0
    entry = json.loads(result.stdout)["entries"][0]
    assert entry["estimate_based"] is False
    assert entry["circuits"]["ibmq-qasm"]["depth"] == 9


def test_malformed_param_is_rejected(workspace: Path) -> None:
    result = CliRunner().invoke(app, ["select", "catalog.json", "shor", "-p", "N15"], env=ENV)

    assert result.exit_code == 1
    assert "NISQA4001" in result.stdout


def test_dispatch_without_plugin_fails_with_no_connector(workspace: Path) -> None:
    result = CliRunner().invoke(
        app, ["dispatch", "catalog.json", "shor-15", "ibmq-qasm", "-p", "N=15"], env=ENV
    )

    assert result.exit_code == 1
    assert "error[NISQA1003]" in result.stdout
    assert "plugins.services" in result.stdout


def test_dispatch_waits_for_the_plugin(workspace: Path) -> None:
    _with_plugin(workspace)

    result = CliRunner().invoke(
        app,
        ["dispatch", "catalog.json", "shor-15", "ibmq-qasm", "-p", "N=15", "--wait", "--timeout", "10", "--json"],
        env=ENV,
    )

    assert result.exit_code == 0
    record = json.loads(result.stdout)
    assert record["status"] == "FINISHED"
    assert record["shots"] == 10
    assert record["result"] == '{"counts": {"00": 10}}'
    assert record["binding"] == {"N": "15"}
    assert record["histogram_intersection"] == 1.0


def test_dispatch_waits_by_default(workspace: Path) -> None:
    _with_plugin(workspace)

    result = CliRunner().invoke(
        app, ["dispatch", "catalog.json", "shor-15", "ibmq-qasm", "-p", "N=15", "--json"], env=ENV
    )

    assert result.exit_code == 0
    assert json.loads(result.stdout)["status"] == "FINISHED"


def test_dispatch_to_unknown_target_fails(workspace: Path) -> None:
    _with_plugin(workspace)

    result = CliRunner().invoke(app, ["dispatch", "catalog.json", "shor-15", "ibmq-nowhere"], env=ENV)

    assert result.exit_code == 1
    assert "unknown id `ibmq-nowhere`" in result.stdout


def test_invalid_config_is_reported(workspace: Path) -> None:
    (workspace / "nisqa.toml").write_text('schema_version = "9"\n', encoding="utf-8")

    result = CliRunner().invoke(app, ["params", "catalog.json", "shor"], env=ENV)

    assert result.exit_code == 1
    assert "error[NISQA1001]" in result.stdout


def test_plugins_list_shows_module_plugins(workspace: Path) -> None:
    result = CliRunner().invoke(
        app, ["plugins", "list", "--plugin", "cli_echo_plugins:plugin_bundle"], env=ENV
    )

    assert result.exit_code == 0
    assert "echo" in result.stdout
    assert "Echo backend" in result.stdout


def test_plugins_list_rejects_bad_spec(workspace: Path) -> None:
    result = CliRunner().invoke(app, ["plugins", "list", "--plugin", "no-colon"], env=ENV)

    assert result.exit_code == 1
    assert "failed to load plugins" in result.stdout


@pytest.mark.parametrize(
    ("args", "expected"),
    [
        (["N > 2 and N % 2 == 1", "-p", "N=15"], "true"),
        (["2 * L + 3", "-p", "L=4"], "11"),
    ],
)
def test_rules_eval_prints_the_answer(workspace: Path, args: list[str], expected: str) -> None:
    result = CliRunner().invoke(app, ["rules", "eval", *args], env=ENV)

    assert result.exit_code == 0
    assert result.stdout.strip() == expected


def test_rules_eval_reports_evaluation_errors(workspace: Path) -> None:
    result = CliRunner().invoke(app, ["rules", "eval", "2 * L + 3", "--json"], env=ENV)

    assert result.exit_code == 1
    assert "NISQA2001" in result.stdout


def test_ranking_methods_lists_wire_names(workspace: Path) -> None:
    result = CliRunner().invoke(app, ["ranking", "methods"], env=ENV)

    assert result.exit_code == 0
    assert "promethee_ii" in result.stdout
    assert "weighted-sum" in result.stdout
