from __future__ import annotations

import logging
import queue
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from nisqa.catalog.types import Implementation
from nisqa.errors import RuleEvaluationError

if TYPE_CHECKING:
    from nisqa.rules.evaluator import RuleEvaluator

LOGGER = logging.getLogger(__name__)

EventKind = Literal["implementation-added", "implementation-updated", "implementation-removed"]


@dataclass(frozen=True, slots=True)
class CatalogEvent:
    kind: EventKind
    implementation: Implementation


class CatalogEventBus:
    """Explicit channel for catalog change notifications."""

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[CatalogEvent] = queue.SimpleQueue()

    def publish(self, event: CatalogEvent) -> None:
        LOGGER.debug("Catalog event %s for implementation %s", event.kind, event.implementation.id)
        self._queue.put(event)

    def drain(self) -> list[CatalogEvent]:
        events: list[CatalogEvent] = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events


class RuleRegistrationSubscriber:
    """Mirrors catalog changes into the rule oracle."""

    def __init__(self, bus: CatalogEventBus, evaluator: RuleEvaluator) -> None:
        self._bus = bus
        self._evaluator = evaluator

    def drain(self) -> int:
        handled = 0
        for event in self._bus.drain():
            try:
                if event.kind == "implementation-removed":
                    self._evaluator.unregister(event.implementation.id)
                else:
                    self._evaluator.register(event.implementation)
            except RuleEvaluationError as exc:
                # queries against this rule set fail individually later
                LOGGER.warning(
                    "Catalog event %s for %s was not applied: %s",
                    event.kind,
                    event.implementation.id,
                    exc,
                )
                continue
            handled += 1
        return handled
