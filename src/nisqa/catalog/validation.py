from __future__ import annotations

from nisqa.catalog.repository import Catalog
from nisqa.catalog.types import Implementation
from nisqa.errors import RuleEvaluationError
from nisqa.rules.params import rule_parameters


def undeclared_rule_parameters(catalog: Catalog, implementation: Implementation) -> dict[str, set[str]]:
    """Map rule kind to parameter names the rule references but nobody declares.

    A rule that cannot be parsed is reported under its kind with the
    ``<unparsable>`` marker.
    """
    declared = {param.name for param in implementation.input_parameters}
    algorithm = catalog.find_algorithm(implementation.algorithm_id)
    if algorithm is not None:
        declared.update(param.name for param in algorithm.input_parameters)

    missing: dict[str, set[str]] = {}
    for kind, rule in implementation.rules().items():
        try:
            names = rule_parameters(rule)
        except RuleEvaluationError:
            missing[kind] = {"<unparsable>"}
            continue
        undeclared = names - declared
        if undeclared:
            missing[kind] = undeclared
    return missing
