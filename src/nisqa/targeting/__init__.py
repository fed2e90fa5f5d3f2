from nisqa.targeting.filter import CandidateFilter
from nisqa.targeting.interfaces import CapabilityPlugin, ExecutionReporter, PluginBundle
from nisqa.targeting.plugins import ServiceCapabilityPlugin, service_plugin_bundle
from nisqa.targeting.registry import CapabilityRegistry
from nisqa.targeting.types import (
    CircuitInformation,
    SelectionEntry,
    SelectionIssue,
    SelectionResult,
)

__all__ = [
    "CandidateFilter",
    "CapabilityPlugin",
    "CapabilityRegistry",
    "CircuitInformation",
    "ExecutionReporter",
    "PluginBundle",
    "SelectionEntry",
    "SelectionIssue",
    "SelectionResult",
    "ServiceCapabilityPlugin",
    "service_plugin_bundle",
]
