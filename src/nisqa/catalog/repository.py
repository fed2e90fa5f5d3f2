from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Protocol

from nisqa.catalog.events import CatalogEvent, CatalogEventBus
from nisqa.catalog.types import Algorithm, Implementation, Target


class Catalog(Protocol):
    def find_algorithm(self, algorithm_id: str) -> Algorithm | None: ...

    def find_algorithm_implementations(self, algorithm_id: str) -> Sequence[Implementation]: ...

    def find_implementation(self, implementation_id: str) -> Implementation | None: ...

    def find_implementations(self) -> Sequence[Implementation]: ...

    def find_targets(self) -> Sequence[Target]: ...

    def find_target_by_id(self, target_id: str) -> Target | None: ...


class InMemoryCatalog:
    """Insertion-ordered catalog keyed by id.

    Lookups return tuples so callers work on a snapshot.
    """

    def __init__(
        self,
        *,
        algorithms: Iterable[Algorithm] = (),
        implementations: Iterable[Implementation] = (),
        targets: Iterable[Target] = (),
        events: CatalogEventBus | None = None,
    ) -> None:
        self.events = events or CatalogEventBus()
        self._algorithms: dict[str, Algorithm] = {}
        self._implementations: dict[str, Implementation] = {}
        self._targets: dict[str, Target] = {}
        for algorithm in algorithms:
            self.add_algorithm(algorithm)
        for implementation in implementations:
            self.add_implementation(implementation)
        for target in targets:
            self.add_target(target)

    def add_algorithm(self, algorithm: Algorithm) -> None:
        self._algorithms[algorithm.id] = algorithm

    def add_implementation(self, implementation: Implementation) -> None:
        kind = "implementation-updated" if implementation.id in self._implementations else "implementation-added"
        self._implementations[implementation.id] = implementation
        self.events.publish(CatalogEvent(kind=kind, implementation=implementation))

    def remove_implementation(self, implementation_id: str) -> None:
        implementation = self._implementations.pop(implementation_id, None)
        if implementation is not None:
            self.events.publish(
                CatalogEvent(kind="implementation-removed", implementation=implementation)
            )

    def add_target(self, target: Target) -> None:
        self._targets[target.id] = target

    def refresh_target(self, target_id: str, **figures: float | int) -> Target:
        target = self._targets.get(target_id)
        if target is None:
            raise KeyError(target_id)
        updated = target.refreshed(**figures)
        self._targets[target_id] = updated
        return updated

    def find_algorithm(self, algorithm_id: str) -> Algorithm | None:
        return self._algorithms.get(algorithm_id)

    def find_algorithms(self) -> tuple[Algorithm, ...]:
        return tuple(self._algorithms.values())

    def find_algorithm_implementations(self, algorithm_id: str) -> tuple[Implementation, ...]:
        return tuple(
            impl for impl in self._implementations.values() if impl.algorithm_id == algorithm_id
        )

    def find_implementation(self, implementation_id: str) -> Implementation | None:
        return self._implementations.get(implementation_id)

    def find_implementations(self) -> tuple[Implementation, ...]:
        return tuple(self._implementations.values())

    def find_targets(self) -> tuple[Target, ...]:
        return tuple(self._targets.values())

    def find_target_by_id(self, target_id: str) -> Target | None:
        return self._targets.get(target_id)
