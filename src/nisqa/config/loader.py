from __future__ import annotations

import tomllib
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import TypeVar, cast

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
from nisqa.errors import ConfigurationError
from nisqa.ranking.methods import resolve_method

E = TypeVar("E", bound=Enum)

DEFAULT_CONFIG_NAME = "nisqa.toml"


def discover_config_path(*, explicit_config: Path | None, cwd: Path | None = None) -> Path | None:
    if explicit_config is not None:
        return explicit_config
    candidate = (cwd or Path.cwd()) / DEFAULT_CONFIG_NAME
    if candidate.is_file():
        return candidate
    return None


def load_config(path: str | Path) -> NisqaConfig:
    config_path = Path(path)
    try:
        with config_path.open("rb") as f:
            payload = tomllib.load(f)
        return config_from_payload(payload)
    except OSError as exc:
        raise ConfigurationError(f"cannot read config file {config_path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"config file {config_path} is not valid TOML: {exc}") from exc
    except ValueError as exc:
        raise ConfigurationError(f"invalid config file {config_path}: {exc}") from exc


def config_from_payload(payload: object) -> NisqaConfig:
    if not isinstance(payload, Mapping):
        raise ValueError("config payload must be a TOML table/object")

    root = cast(Mapping[str, object], payload)
    schema_version = _require_str(root, "schema_version", path="schema_version")
    if schema_version != "1":
        raise ValueError('`schema_version` must be "1"')

    return NisqaConfig(
        schema_version=schema_version,
        rules=_parse_rules(root.get("rules"), path="rules"),
        selection=_parse_selection(root.get("selection"), path="selection"),
        execution=_parse_execution(root.get("execution"), path="execution"),
        ranking=_parse_ranking(root.get("ranking"), path="ranking"),
        plugins=_parse_plugins(root.get("plugins"), path="plugins"),
    )


def _parse_rules(raw: object, *, path: str) -> RulesConfig:
    table = _require_mapping(raw, path)
    engine = RuleEngine.embedded
    if table.get("engine") is not None:
        engine = _parse_enum(table["engine"], enum_cls=RuleEngine, path=f"{path}.engine")
    url = _parse_optional_non_empty_str(table.get("url"), path=f"{path}.url")
    if engine is RuleEngine.remote and url is None:
        raise ValueError(f"`{path}.url` is required when `{path}.engine` is `remote`")
    return RulesConfig(
        engine=engine,
        url=url,
        timeout=_parse_positive_float(table.get("timeout", 10.0), path=f"{path}.timeout"),
    )


def _parse_selection(raw: object, *, path: str) -> SelectionConfig:
    table = _require_mapping(raw, path)
    return SelectionConfig(
        exempt_simulators=_parse_optional_bool(
            table.get("exempt_simulators"), path=f"{path}.exempt_simulators"
        )
    )


def _parse_execution(raw: object, *, path: str) -> ExecutionConfig:
    table = _require_mapping(raw, path)
    attempts = table.get("similarity_attempts", 60)
    if isinstance(attempts, bool) or not isinstance(attempts, int) or attempts < 1:
        raise ValueError(f"`{path}.similarity_attempts` must be an integer >= 1")
    return ExecutionConfig(
        similarity_attempts=attempts,
        similarity_interval=_parse_non_negative_float(
            table.get("similarity_interval", 1.0), path=f"{path}.similarity_interval"
        ),
    )


def _parse_ranking(raw: object, *, path: str) -> RankingConfig:
    table = _require_mapping(raw, path)
    method = _parse_optional_non_empty_str(table.get("method"), path=f"{path}.method") or "topsis"
    try:
        resolve_method(method)
    except ValueError as exc:
        raise ValueError(f"`{path}.method`: {exc}") from exc
    return RankingConfig(
        url=_parse_optional_non_empty_str(table.get("url"), path=f"{path}.url"),
        poll_interval=_parse_non_negative_float(
            table.get("poll_interval", 5.0), path=f"{path}.poll_interval"
        ),
        method=method,
        learning_method=_parse_optional_non_empty_str(
            table.get("learning_method"), path=f"{path}.learning_method"
        )
        or "cobyla",
        timeout=_parse_positive_float(table.get("timeout", 30.0), path=f"{path}.timeout"),
    )


def _parse_plugins(raw: object, *, path: str) -> PluginsConfig:
    table = _require_mapping(raw, path)
    services_table = _require_mapping(table.get("services"), f"{path}.services")
    services = {
        name: _parse_service(value, path=f"{path}.services.{name}")
        for name, value in services_table.items()
    }
    entry_points = table.get("entry_points", True)
    if not isinstance(entry_points, bool):
        raise ValueError(f"`{path}.entry_points` must be a boolean")
    return PluginsConfig(
        modules=_parse_str_list(table.get("modules"), path=f"{path}.modules"),
        entry_points=entry_points,
        services=services,
    )


def _parse_service(raw: object, *, path: str) -> ServiceConfig:
    table = _require_mapping(raw, path)
    ecosystems = _parse_str_list(table.get("ecosystems"), path=f"{path}.ecosystems")
    if not ecosystems:
        raise ValueError(f"`{path}.ecosystems` must list at least one ecosystem")
    return ServiceConfig(
        url=_require_str(table, "url", path=f"{path}.url"),
        ecosystems=tuple(ecosystem.lower() for ecosystem in ecosystems),
        parameters=_parse_str_list(table.get("parameters"), path=f"{path}.parameters"),
        poll_interval=_parse_non_negative_float(
            table.get("poll_interval", 10.0), path=f"{path}.poll_interval"
        ),
        timeout=_parse_positive_float(table.get("timeout", 60.0), path=f"{path}.timeout"),
    )


def _require_mapping(raw: object, path: str) -> Mapping[str, object]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"`{path}` must be a TOML table/object")
    return cast(Mapping[str, object], raw)


def _require_str(table: Mapping[str, object], key: str, *, path: str) -> str:
    raw = table.get(key)
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError(f"`{path}` must be a non-empty string")
    return raw.strip()


def _parse_optional_non_empty_str(raw: object, *, path: str) -> str | None:
    if raw is None:
        return None
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError(f"`{path}` must be a non-empty string when provided")
    return raw.strip()


def _parse_optional_bool(raw: object, *, path: str) -> bool:
    if raw is None:
        return False
    if not isinstance(raw, bool):
        raise ValueError(f"`{path}` must be a boolean")
    return raw


def _parse_str_list(raw: object, *, path: str) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise ValueError(f"`{path}` must be an array of strings")
    values: list[str] = []
    for idx, item in enumerate(raw):
        if not isinstance(item, str) or not item.strip():
            raise ValueError(f"`{path}[{idx}]` must be a non-empty string")
        values.append(item.strip())
    return tuple(values)


def _parse_float(raw: object, *, path: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"`{path}` must be a number")
    return float(raw)


def _parse_positive_float(raw: object, *, path: str) -> float:
    value = _parse_float(raw, path=path)
    if value <= 0:
        raise ValueError(f"`{path}` must be > 0")
    return value


def _parse_non_negative_float(raw: object, *, path: str) -> float:
    value = _parse_float(raw, path=path)
    if value < 0:
        raise ValueError(f"`{path}` must be >= 0")
    return value


def _parse_enum(raw: object, *, enum_cls: type[E], path: str) -> E:
    if not isinstance(raw, str):
        raise ValueError(f"`{path}` must be a string")
    try:
        return enum_cls(raw)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"`{path}` must be one of: {allowed}") from exc
