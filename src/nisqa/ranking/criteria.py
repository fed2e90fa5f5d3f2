from __future__ import annotations

from collections.abc import Iterable, Mapping

from nisqa.catalog.repository import Catalog
from nisqa.execution.types import ExecutionResult
from nisqa.ranking.types import Direction, PerformanceMatrix, PerformanceRow, RankingCriterion

# criterion name -> preferred direction
CRITERIA: dict[str, Direction] = {
    "width": "min",
    "depth": "min",
    "number-of-gates": "min",
    "number-of-multi-qubit-gates": "min",
    "multi-qubit-gate-depth": "min",
    "avg-readout-error": "min",
    "avg-multi-qubit-gate-error": "min",
    "avg-multi-qubit-gate-time": "min",
    "avg-single-qubit-gate-error": "min",
    "avg-t1": "max",
    "avg-t2": "max",
    "queue-size": "min",
    "histogram-intersection": "max",
}

# ranked by Borda count on the service side, never weighted
BORDA_CRITERIA = frozenset({"queue-size"})


def attach_weights(weights: Mapping[str, float]) -> list[RankingCriterion]:
    """Turn a name -> weight mapping into criteria carrying their direction.

    Every known criterion appears in the output; missing names get weight 0.
    Borda-count criteria always carry weight 0.
    """
    unknown = sorted(set(weights) - set(CRITERIA))
    if unknown:
        raise ValueError(f"unknown ranking criteria: {', '.join(unknown)}")
    criteria: list[RankingCriterion] = []
    for name, direction in CRITERIA.items():
        weight = float(weights.get(name, 0.0))
        if weight < 0:
            raise ValueError(f"weight of `{name}` must be >= 0")
        if name in BORDA_CRITERIA:
            weight = 0.0
        criteria.append(RankingCriterion(name=name, weight=weight, direction=direction))
    return criteria


def default_criteria() -> list[RankingCriterion]:
    share = 1.0 / (len(CRITERIA) - len(BORDA_CRITERIA))
    return attach_weights({name: share for name in CRITERIA})


def build_matrix(
    job_id: str, results: Iterable[ExecutionResult], catalog: Catalog
) -> PerformanceMatrix:
    rows: list[PerformanceRow] = []
    for result in results:
        target = catalog.find_target_by_id(result.target_id)
        circuit = result.circuit
        values: dict[str, float] = dict.fromkeys(CRITERIA, 0.0)
        if circuit is not None:
            values["width"] = circuit.width
            values["depth"] = circuit.depth
            values["number-of-gates"] = circuit.total_operations
            values["number-of-multi-qubit-gates"] = circuit.multi_qubit_gates
            values["multi-qubit-gate-depth"] = circuit.multi_qubit_gate_depth
        if target is not None:
            values["avg-readout-error"] = target.avg_readout_error
            values["avg-multi-qubit-gate-error"] = target.avg_multi_qubit_gate_error
            values["avg-multi-qubit-gate-time"] = target.avg_multi_qubit_gate_time
            values["avg-single-qubit-gate-error"] = target.avg_single_qubit_gate_error
            values["avg-t1"] = target.t1
            values["avg-t2"] = target.t2
            values["queue-size"] = target.queue_size
        values["histogram-intersection"] = result.histogram_intersection or 0.0
        rows.append(PerformanceRow(result_id=result.id, values=values))
    return PerformanceMatrix(job_id=job_id, rows=tuple(rows))
