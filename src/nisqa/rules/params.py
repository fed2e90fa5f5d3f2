from __future__ import annotations

from nisqa.rules.expressions import iter_names, parse_rule


def rule_parameters(rule: str) -> set[str]:
    """Return the parameter names referenced by ``rule``."""
    return set(iter_names(parse_rule(rule)))
