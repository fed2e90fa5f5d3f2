from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class RuleEngine(str, Enum):
    embedded = "embedded"
    remote = "remote"


@dataclass(frozen=True, slots=True)
class RulesConfig:
    engine: RuleEngine = RuleEngine.embedded
    url: str | None = None
    timeout: float = 10.0


@dataclass(frozen=True, slots=True)
class SelectionConfig:
    exempt_simulators: bool = False


@dataclass(frozen=True, slots=True)
class ExecutionConfig:
    similarity_attempts: int = 60
    similarity_interval: float = 1.0


@dataclass(frozen=True, slots=True)
class RankingConfig:
    url: str | None = None
    poll_interval: float = 5.0
    method: str = "topsis"
    learning_method: str = "cobyla"
    timeout: float = 30.0


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    url: str
    ecosystems: tuple[str, ...]
    parameters: tuple[str, ...] = ()
    poll_interval: float = 10.0
    timeout: float = 60.0


@dataclass(frozen=True, slots=True)
class PluginsConfig:
    modules: tuple[str, ...] = ()
    entry_points: bool = True
    services: dict[str, ServiceConfig] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class NisqaConfig:
    schema_version: str = "1"
    rules: RulesConfig = field(default_factory=RulesConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    ranking: RankingConfig = field(default_factory=RankingConfig)
    plugins: PluginsConfig = field(default_factory=PluginsConfig)
