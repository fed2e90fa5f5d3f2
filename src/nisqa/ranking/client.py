from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from nisqa.errors import RemoteServiceError
from nisqa.ranking.criteria import BORDA_CRITERIA
from nisqa.ranking.methods import McdaMethod
from nisqa.ranking.types import PerformanceMatrix, RankingCriterion, RankingPoll
from nisqa.util.http import HttpClient, json_body

LOGGER = logging.getLogger(__name__)


class RankingService(Protocol):
    def submit_ranking(
        self, method: McdaMethod, matrix: PerformanceMatrix, criteria: Sequence[RankingCriterion]
    ) -> str | None: ...

    def submit_learning(
        self,
        method: McdaMethod,
        matrix: PerformanceMatrix,
        criteria: Sequence[RankingCriterion],
        learning_method: str,
    ) -> str | None: ...

    def poll(self, handle: str) -> RankingPoll: ...


class HttpRankingService:
    """Client of the external multi-criteria ranking service.

    Submissions answer with a ``Location`` header naming a task resource;
    the task reports ``log``/``status`` and, once finished, links its output.
    """

    def __init__(self, client: HttpClient) -> None:
        self.client = client

    def submit_ranking(
        self, method: McdaMethod, matrix: PerformanceMatrix, criteria: Sequence[RankingCriterion]
    ) -> str | None:
        body = _request_body(method, matrix, criteria)
        return self._submit("rank", body)

    def submit_learning(
        self,
        method: McdaMethod,
        matrix: PerformanceMatrix,
        criteria: Sequence[RankingCriterion],
        learning_method: str,
    ) -> str | None:
        body = _request_body(method, matrix, criteria)
        body["learning_method"] = learning_method
        return self._submit("learn-weights", body)

    def poll(self, handle: str) -> RankingPoll:
        task = _require_mapping(
            json_body(self.client.request("GET", handle), "ranking task"), "ranking task"
        )
        log = str(task.get("log", ""))
        if log.lower() != "finished":
            return RankingPoll(state="pending")
        status = str(task.get("status", ""))
        if status.lower() != "success":
            return RankingPoll(state="failure", reason=f"ranking service reported status `{status}`")

        outputs = task.get("outputs")
        if not isinstance(outputs, list) or not outputs or not isinstance(outputs[0], Mapping):
            raise RemoteServiceError("ranking task has no outputs")
        href = outputs[0].get("href")
        if not isinstance(href, str) or not href:
            raise RemoteServiceError("ranking task output has no href")

        output = _require_mapping(
            json_body(self.client.request("GET", href), "ranking output"), "ranking output"
        )
        return RankingPoll(
            state="success",
            scores=_number_map(output.get("scores"), "scores"),
            ranking=_id_list(output.get("ranking")),
            weights=_number_map(output.get("weights"), "weights"),
        )

    def _submit(self, endpoint: str, body: dict[str, Any]) -> str | None:
        response = self.client.request("POST", endpoint, json=body)
        location = response.headers.get("Location")
        if not response.ok or not location:
            LOGGER.warning(
                "Ranking service refused %s (HTTP %d)", endpoint, response.status_code
            )
            return None
        return location


def _request_body(
    method: McdaMethod, matrix: PerformanceMatrix, criteria: Sequence[RankingCriterion]
) -> dict[str, Any]:
    def weight(criterion: RankingCriterion) -> dict[str, object]:
        return {"weight": criterion.weight, "minimize": criterion.minimize}

    return {
        "mcda_method": method.wire_name,
        "metric_weights": {c.name: weight(c) for c in criteria if c.name not in BORDA_CRITERIA},
        "borda_count_metrics": {c.name: weight(c) for c in criteria if c.name in BORDA_CRITERIA},
        "circuits": [
            {
                "id": matrix.job_id,
                "compiled_circuits": [{"id": row.result_id, **row.values} for row in matrix.rows],
            }
        ],
    }


def _require_mapping(raw: object, context: str) -> Mapping[str, object]:
    if not isinstance(raw, Mapping):
        raise RemoteServiceError(f"{context}: expected a JSON object")
    return raw


def _number_map(raw: object, key: str) -> dict[str, float]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise RemoteServiceError(f"ranking output `{key}` must be an object")
    values: dict[str, float] = {}
    for name, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise RemoteServiceError(f"ranking output `{key}.{name}` must be a number")
        values[str(name)] = float(value)
    return values


def _id_list(raw: object) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise RemoteServiceError("ranking output `ranking` must be an array")
    return tuple(str(item) for item in raw)
