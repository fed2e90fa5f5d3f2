from __future__ import annotations

import logging
import math
from collections.abc import Iterable

from nisqa.catalog.binding import binding_to_strings
from nisqa.catalog.types import Binding, Implementation
from nisqa.errors import RuleEvaluationError
from nisqa.rules.interfaces import RuleOracle, RuleSet

LOGGER = logging.getLogger(__name__)


class RuleEvaluator:
    """Answers admissibility and resource-estimate questions through a rule oracle.

    Absent rules never reach the oracle: a missing selection rule admits every
    binding and a missing estimate rule requires nothing.
    """

    def __init__(self, oracle: RuleOracle) -> None:
        self.oracle = oracle

    def register(self, implementation: Implementation) -> None:
        rule_set = RuleSet(id=implementation.id, rules=tuple(implementation.rules().values()))
        self.oracle.activate(rule_set)

    def unregister(self, implementation_id: str) -> None:
        self.oracle.deactivate(implementation_id)

    def stage(self, implementations: Iterable[Implementation]) -> None:
        for implementation in implementations:
            try:
                self.register(implementation)
            except RuleEvaluationError as exc:
                # queries against this rule set fail individually later
                LOGGER.warning("Rules of %s were not registered: %s", implementation.id, exc)

    def admissible(self, rule: str | None, binding: Binding) -> bool:
        if rule is None:
            return True
        answer = self.oracle.query(rule, binding_to_strings(binding))
        if not isinstance(answer, bool):
            raise RuleEvaluationError(
                f"selection rule `{rule}` answered {answer!r}, expected true or false"
            )
        LOGGER.debug("Rule `%s` -> %s", rule, answer)
        return answer

    def estimate(self, rule: str | None, binding: Binding) -> int:
        if rule is None:
            return 0
        answer = self.oracle.query(rule, binding_to_strings(binding))
        if isinstance(answer, bool) or not isinstance(answer, (int, float)):
            raise RuleEvaluationError(f"estimate rule `{rule}` answered {answer!r}, expected a number")
        if isinstance(answer, float):
            if not math.isfinite(answer):
                raise RuleEvaluationError(f"estimate rule `{rule}` answered {answer!r}")
            answer = math.ceil(answer)
        if answer < 0:
            raise RuleEvaluationError(f"estimate rule `{rule}` answered a negative value ({answer})")
        LOGGER.debug("Estimate `%s` -> %s", rule, answer)
        return answer
