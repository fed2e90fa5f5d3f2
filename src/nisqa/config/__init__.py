from nisqa.config.loader import config_from_payload, discover_config_path, load_config
from nisqa.config.types import (
    ExecutionConfig,
    NisqaConfig,
    PluginsConfig,
    RankingConfig,
    RuleEngine,
    RulesConfig,
    SelectionConfig,
    ServiceConfig,
)

__all__ = [
    "ExecutionConfig",
    "NisqaConfig",
    "PluginsConfig",
    "RankingConfig",
    "RuleEngine",
    "RulesConfig",
    "SelectionConfig",
    "ServiceConfig",
    "config_from_payload",
    "discover_config_path",
    "load_config",
]
