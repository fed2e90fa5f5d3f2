from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class McdaMethod:
    """A multi-criteria decision method the ranking service knows how to run."""

    name: str
    wire_name: str
    description: str


METHODS: dict[str, McdaMethod] = {
    method.name: method
    for method in (
        McdaMethod("topsis", "topsis", "Distance to the ideal and anti-ideal solution."),
        McdaMethod("promethee-ii", "promethee_ii", "Complete outranking by net preference flow."),
        McdaMethod("electre-iii", "electre_iii", "Outranking with pseudo-criteria and distillation."),
        McdaMethod("weighted-sum", "weighted_sum", "Weighted sum of normalised criteria."),
    )
}


def resolve_method(name: str) -> McdaMethod:
    method = METHODS.get(name.lower())
    if method is None:
        allowed = ", ".join(sorted(METHODS))
        raise ValueError(f"unknown ranking method `{name}`; expected one of: {allowed}")
    return method


def list_methods() -> list[McdaMethod]:
    return [METHODS[name] for name in sorted(METHODS)]
