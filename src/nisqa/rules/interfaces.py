from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class RuleSet:
    """Named group of rules registered with an oracle, one per implementation."""

    id: str
    rules: tuple[str, ...]


class RuleOracle(Protocol):
    def activate(self, rule_set: RuleSet) -> None: ...

    def deactivate(self, rule_set_id: str) -> None: ...

    def query(self, rule: str, binding: Mapping[str, str]) -> bool | int | float: ...
