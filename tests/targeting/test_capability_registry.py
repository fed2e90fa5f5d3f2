from __future__ import annotations

import textwrap
from dataclasses import dataclass
from pathlib import Path

import pytest

from conftest import FakePlugin
from nisqa.errors import NoConnectorError
from nisqa.targeting import registry as registry_module
from nisqa.targeting.interfaces import PluginBundle
from nisqa.targeting.registry import CapabilityRegistry


def test_plugins_are_found_by_ecosystem_case_insensitively() -> None:
    registry = CapabilityRegistry()
    plugin = FakePlugin(ecosystems=("Qiskit", "openqasm"))
    registry.register_plugin(plugin)

    assert registry.for_ecosystem("QISKIT") is plugin
    assert registry.require("openqasm") is plugin
    assert registry.ecosystems() == ["openqasm", "qiskit"]
    assert registry.plugin("fake") is plugin
    assert registry.for_ecosystem("pyquil") is None


def test_require_raises_for_unserved_ecosystem() -> None:
    with pytest.raises(NoConnectorError) as excinfo:
        CapabilityRegistry().require("pyquil")

    assert excinfo.value.ecosystem == "pyquil"
    assert excinfo.value.code == "NISQA1003"


def test_duplicate_plugin_id_is_rejected() -> None:
    registry = CapabilityRegistry()
    registry.register_plugin(FakePlugin())

    with pytest.raises(ValueError, match="duplicate capability plugin id"):
        registry.register_plugin(FakePlugin(ecosystems=("pyquil",)))


def test_ecosystem_has_at_most_one_plugin() -> None:
    registry = CapabilityRegistry()
    registry.register_plugin(FakePlugin())

    with pytest.raises(ValueError, match="already served by plugin `fake`"):
        registry.register_plugin(FakePlugin(plugin_id="other", ecosystems=("pyquil", "qiskit")))
    assert registry.for_ecosystem("pyquil") is None


def test_module_bundle_is_loaded_from_spec(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "sample_nisqa_plugins.py").write_text(
        textwrap.dedent(
            """
            from conftest import FakePlugin
            from nisqa.targeting.interfaces import PluginBundle


            def plugin_bundle():
                return PluginBundle(plugins=[FakePlugin(plugin_id="sample", ecosystems=("forest",))])

            not_a_bundle = 42
            """
        ),
        encoding="utf-8",
    )
    monkeypatch.syspath_prepend(str(tmp_path))

    registry = CapabilityRegistry.from_discovery(
        module_specs=["sample_nisqa_plugins:plugin_bundle"], entry_points=False
    )

    assert [plugin.plugin_id for plugin in registry.list_plugins()] == ["sample"]
    with pytest.raises(ValueError, match="must resolve to a PluginBundle"):
        registry.load_module_bundle("sample_nisqa_plugins:not_a_bundle")
    with pytest.raises(ValueError, match="has no attribute"):
        registry.load_module_bundle("sample_nisqa_plugins:missing")


@pytest.mark.parametrize("spec", ["no_colon", ":attr", "module:"])
def test_malformed_module_spec_is_rejected(spec: str) -> None:
    with pytest.raises(ValueError, match="module:attribute"):
        CapabilityRegistry().load_module_bundle(spec)


@dataclass
class _EntryPoint:
    value: object

    def load(self) -> object:
        return self.value


def test_entry_points_may_provide_plugins_or_bundles(monkeypatch: pytest.MonkeyPatch) -> None:
    bundle = PluginBundle(plugins=[FakePlugin(plugin_id="from-bundle", ecosystems=("forest",))])
    entry_points = [_EntryPoint(lambda: bundle), _EntryPoint(FakePlugin())]
    monkeypatch.setattr(registry_module, "_iter_entry_points", lambda group: entry_points)

    registry = CapabilityRegistry.from_discovery()

    assert [plugin.plugin_id for plugin in registry.list_plugins()] == ["fake", "from-bundle"]
