from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import cast

from nisqa.catalog.repository import InMemoryCatalog
from nisqa.catalog.types import Algorithm, DataType, Implementation, Parameter, Target


def load_catalog(path: str | Path) -> InMemoryCatalog:
    catalog_path = Path(path)
    payload = json.loads(catalog_path.read_text(encoding="utf-8"))
    return catalog_from_payload(payload)


def catalog_from_payload(payload: object) -> InMemoryCatalog:
    if not isinstance(payload, Mapping):
        raise ValueError("catalog payload must be a JSON object")
    root = cast(Mapping[str, object], payload)

    algorithms = [
        _parse_algorithm(item, path=f"algorithms[{idx}]")
        for idx, item in enumerate(_require_list(root.get("algorithms"), "algorithms"))
    ]
    implementations = [
        _parse_implementation(item, path=f"implementations[{idx}]")
        for idx, item in enumerate(_require_list(root.get("implementations"), "implementations"))
    ]
    targets = [
        _parse_target(item, path=f"targets[{idx}]")
        for idx, item in enumerate(_require_list(root.get("targets"), "targets"))
    ]

    known = {algorithm.id for algorithm in algorithms}
    for implementation in implementations:
        if implementation.algorithm_id not in known:
            raise ValueError(
                f"implementation `{implementation.id}` references unknown algorithm "
                f"`{implementation.algorithm_id}`"
            )

    return InMemoryCatalog(algorithms=algorithms, implementations=implementations, targets=targets)


def _parse_algorithm(raw: object, *, path: str) -> Algorithm:
    table = _require_mapping(raw, path)
    algorithm_id = _require_str(table, "id", path=path)
    return Algorithm(
        id=algorithm_id,
        name=_optional_str(table.get("name"), path=f"{path}.name") or algorithm_id,
        input_parameters=_parse_parameters(table.get("input_parameters"), path=f"{path}.input_parameters"),
    )


def _parse_implementation(raw: object, *, path: str) -> Implementation:
    table = _require_mapping(raw, path)
    implementation_id = _require_str(table, "id", path=path)
    return Implementation(
        id=implementation_id,
        name=_optional_str(table.get("name"), path=f"{path}.name") or implementation_id,
        algorithm_id=_require_str(table, "algorithm", path=path),
        ecosystem=_require_str(table, "ecosystem", path=path).lower(),
        file_location=_optional_str(table.get("file_location"), path=f"{path}.file_location") or "",
        selection_rule=_optional_str(table.get("selection_rule"), path=f"{path}.selection_rule"),
        width_rule=_optional_str(table.get("width_rule"), path=f"{path}.width_rule"),
        depth_rule=_optional_str(table.get("depth_rule"), path=f"{path}.depth_rule"),
        input_parameters=_parse_parameters(table.get("input_parameters"), path=f"{path}.input_parameters"),
        output_parameters=_parse_parameters(
            table.get("output_parameters"), path=f"{path}.output_parameters"
        ),
    )


def _parse_target(raw: object, *, path: str) -> Target:
    table = _require_mapping(raw, path)
    target_id = _require_str(table, "id", path=path)
    ecosystems_raw = _require_list(table.get("ecosystems"), f"{path}.ecosystems")
    ecosystems: set[str] = set()
    for idx, value in enumerate(ecosystems_raw):
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{path}.ecosystems[{idx}]` must be a non-empty string")
        ecosystems.add(value.strip().lower())

    simulator = table.get("simulator", False)
    if not isinstance(simulator, bool):
        raise ValueError(f"`{path}.simulator` must be a boolean")

    return Target(
        id=target_id,
        name=_optional_str(table.get("name"), path=f"{path}.name") or target_id,
        provider=_optional_str(table.get("provider"), path=f"{path}.provider") or "",
        qubit_count=_parse_int(table.get("qubit_count"), path=f"{path}.qubit_count"),
        t1=_parse_number(table.get("t1", 0.0), path=f"{path}.t1"),
        max_gate_time=_parse_number(table.get("max_gate_time", 0.0), path=f"{path}.max_gate_time"),
        simulator=simulator,
        ecosystems=frozenset(ecosystems),
        queue_size=_parse_int(table.get("queue_size", 0), path=f"{path}.queue_size"),
        t2=_parse_number(table.get("t2", 0.0), path=f"{path}.t2"),
        avg_readout_error=_parse_number(
            table.get("avg_readout_error", 0.0), path=f"{path}.avg_readout_error"
        ),
        avg_single_qubit_gate_error=_parse_number(
            table.get("avg_single_qubit_gate_error", 0.0),
            path=f"{path}.avg_single_qubit_gate_error",
        ),
        avg_multi_qubit_gate_error=_parse_number(
            table.get("avg_multi_qubit_gate_error", 0.0),
            path=f"{path}.avg_multi_qubit_gate_error",
        ),
        avg_multi_qubit_gate_time=_parse_number(
            table.get("avg_multi_qubit_gate_time", 0.0),
            path=f"{path}.avg_multi_qubit_gate_time",
        ),
    )


def _parse_parameters(raw: object, *, path: str) -> tuple[Parameter, ...]:
    params: list[Parameter] = []
    for idx, item in enumerate(_require_list(raw, path)):
        item_path = f"{path}[{idx}]"
        table = _require_mapping(item, item_path)
        type_raw = table.get("type", DataType.unknown.value)
        try:
            data_type = DataType(str(type_raw).lower())
        except ValueError as exc:
            allowed = ", ".join(member.value for member in DataType)
            raise ValueError(f"`{item_path}.type` must be one of: {allowed}") from exc
        params.append(
            Parameter(
                name=_require_str(table, "name", path=item_path),
                type=data_type,
                description=_optional_str(table.get("description"), path=f"{item_path}.description")
                or "",
            )
        )
    return tuple(params)


def _require_mapping(raw: object, path: str) -> Mapping[str, object]:
    if not isinstance(raw, Mapping):
        raise ValueError(f"`{path}` must be a JSON object")
    return cast(Mapping[str, object], raw)


def _require_list(raw: object, path: str) -> list[object]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"`{path}` must be an array")
    return raw


def _require_str(table: Mapping[str, object], key: str, *, path: str) -> str:
    raw = table.get(key)
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError(f"`{path}.{key}` must be a non-empty string")
    return raw.strip()


def _optional_str(raw: object, *, path: str) -> str | None:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValueError(f"`{path}` must be a string when provided")
    return raw.strip() or None


def _parse_int(raw: object, *, path: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValueError(f"`{path}` must be an integer")
    if raw < 0:
        raise ValueError(f"`{path}` must be >= 0")
    return raw


def _parse_number(raw: object, *, path: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ValueError(f"`{path}` must be a number")
    return float(raw)
