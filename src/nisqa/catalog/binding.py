from __future__ import annotations

from collections.abc import Iterable, Mapping

from nisqa.catalog.types import Binding, DataType, Parameter, ParameterValue


def infer_binding(
    declared: Iterable[Parameter],
    raw_values: Mapping[str, str],
) -> dict[str, ParameterValue]:
    """Attach declared types to raw input strings.

    Values without a declaration are kept with ``DataType.unknown``.
    """
    types = {param.name: param.type for param in declared}
    return {
        name: ParameterValue(name=name, type=types.get(name, DataType.unknown), raw=str(raw))
        for name, raw in raw_values.items()
    }


def binding_to_strings(binding: Binding) -> dict[str, str]:
    return {name: value.raw for name, value in binding.items()}


def parse_assignments(items: Iterable[str]) -> dict[str, str]:
    values: dict[str, str] = {}
    for item in items:
        key, sep, raw_value = item.partition("=")
        if not sep or not key.strip():
            raise ValueError(
                "parameters must use `name=value` format; example: --param N=15"
            )
        values[key.strip()] = raw_value
    return values
