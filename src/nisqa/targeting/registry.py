from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from importlib import import_module, metadata
from typing import Any, cast

from nisqa.errors import NoConnectorError
from nisqa.targeting.interfaces import CapabilityPlugin, PluginBundle

LOGGER = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "nisqa.plugins"


@dataclass(slots=True)
class CapabilityRegistry:
    """Capability plugins keyed by id and by the ecosystems they serve."""

    _plugins: dict[str, CapabilityPlugin] = field(default_factory=dict)
    _by_ecosystem: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_discovery(
        cls,
        *,
        bundles: Iterable[PluginBundle] = (),
        module_specs: list[str] | None = None,
        entry_points: bool = True,
    ) -> CapabilityRegistry:
        registry = cls()
        for bundle in bundles:
            registry.register_bundle(bundle)
        if entry_points:
            registry.load_entry_points()
        for spec in module_specs or []:
            registry.load_module_bundle(spec)
        return registry

    def register_bundle(self, bundle: PluginBundle) -> None:
        for plugin in bundle.plugins:
            self.register_plugin(plugin)

    def register_plugin(self, plugin: CapabilityPlugin) -> None:
        plugin_id = plugin.plugin_id
        if plugin_id in self._plugins:
            raise ValueError(f"duplicate capability plugin id: {plugin_id}")
        ecosystems = [name.lower() for name in plugin.supported_ecosystems()]
        for ecosystem in ecosystems:
            owner = self._by_ecosystem.get(ecosystem)
            if owner is not None:
                raise ValueError(
                    f"ecosystem `{ecosystem}` is already served by plugin `{owner}`"
                )
        self._plugins[plugin_id] = plugin
        for ecosystem in ecosystems:
            self._by_ecosystem[ecosystem] = plugin_id
        LOGGER.debug("Registered plugin %s for %s", plugin_id, ", ".join(ecosystems) or "-")

    def load_entry_points(self) -> None:
        for ep in _iter_entry_points(ENTRY_POINT_GROUP):
            loaded = ep.load()
            value = loaded() if callable(loaded) else loaded
            if isinstance(value, PluginBundle):
                self.register_bundle(value)
            else:
                self.register_plugin(cast(CapabilityPlugin, value))

    def load_module_bundle(self, module_spec: str) -> None:
        module_name, attr_name = _parse_module_spec(module_spec)
        module = import_module(module_name)
        if not hasattr(module, attr_name):
            raise ValueError(f"module '{module_name}' has no attribute '{attr_name}'")
        value: Any = getattr(module, attr_name)
        bundle = value() if callable(value) else value
        if not isinstance(bundle, PluginBundle):
            raise ValueError(
                f"'{module_spec}' must resolve to a PluginBundle or callable returning one"
            )
        self.register_bundle(bundle)

    def plugin(self, plugin_id: str) -> CapabilityPlugin | None:
        return self._plugins.get(plugin_id)

    def for_ecosystem(self, ecosystem: str) -> CapabilityPlugin | None:
        plugin_id = self._by_ecosystem.get(ecosystem.lower())
        if plugin_id is None:
            return None
        return self._plugins[plugin_id]

    def require(self, ecosystem: str) -> CapabilityPlugin:
        plugin = self.for_ecosystem(ecosystem)
        if plugin is None:
            raise NoConnectorError(ecosystem)
        return plugin

    def ecosystems(self) -> list[str]:
        return sorted(self._by_ecosystem)

    def list_plugins(self) -> list[CapabilityPlugin]:
        return [self._plugins[k] for k in sorted(self._plugins)]


def _iter_entry_points(group: str) -> list[metadata.EntryPoint]:
    return list(metadata.entry_points().select(group=group))


def _parse_module_spec(module_spec: str) -> tuple[str, str]:
    module_name, sep, attr_name = module_spec.partition(":")
    if not sep or not module_name or not attr_name:
        raise ValueError(
            "plugin spec must use 'module:attribute', for example 'my_plugins:plugin_bundle'"
        )
    return module_name, attr_name
