from __future__ import annotations

import logging
import threading
import time
import uuid
from collections.abc import Callable, Mapping
from concurrent import futures
from dataclasses import replace
from typing import Any

from nisqa.catalog.repository import Catalog
from nisqa.errors import ConfigurationError, RemoteServiceError
from nisqa.execution.store import ExecutionStore
from nisqa.execution.tasks import TaskSupervisor, completed
from nisqa.execution.types import ExecutionResult, ExecutionStatus
from nisqa.ranking.client import RankingService
from nisqa.ranking.criteria import attach_weights, build_matrix, default_criteria
from nisqa.ranking.methods import McdaMethod, resolve_method
from nisqa.ranking.types import (
    JobKind,
    PerformanceMatrix,
    RankedResult,
    RankingJob,
    RankingPoll,
)
from nisqa.util.polling import poll_until

LOGGER = logging.getLogger(__name__)


class RankingPipeline:
    """Ranks the finished executions of a job through an external MCDA service.

    Both :meth:`rank` and :meth:`learn_weights` validate their arguments,
    record a ranking job and return its id; the remote round trip runs on a
    supervised task that leaves the job FINISHED or FAILED.
    """

    def __init__(
        self,
        executions: ExecutionStore,
        catalog: Catalog,
        service: RankingService | None,
        *,
        supervisor: TaskSupervisor | None = None,
        default_method: str = "topsis",
        learning_method: str = "cobyla",
        poll_interval: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.executions = executions
        self.catalog = catalog
        self.service = service
        self.supervisor = supervisor or TaskSupervisor()
        self.default_method = resolve_method(default_method)
        self.learning_method = learning_method
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._lock = threading.Lock()
        self._jobs: dict[str, RankingJob] = {}
        self._tasks: dict[str, futures.Future[Any]] = {}

    def rank(self, job_id: str, weights: Mapping[str, float], method: str | None = None) -> str:
        mcda = self._method(method)
        criteria = attach_weights(weights)
        service = self._require_service()
        rows = [r for r in self.executions.find_by_context(job_id) if r.status is ExecutionStatus.finished]
        return self._start("rank", job_id, mcda, rows, lambda matrix: service.submit_ranking(mcda, matrix, criteria))

    def learn_weights(self, job_id: str, method: str | None = None) -> str:
        mcda = self._method(method)
        criteria = default_criteria()
        service = self._require_service()
        rows = [
            r
            for r in self.executions.find_by_context(job_id)
            if r.status is ExecutionStatus.finished and (r.histogram_intersection or 0.0) > 0
        ]
        return self._start(
            "learn-weights",
            job_id,
            mcda,
            rows,
            lambda matrix: service.submit_learning(mcda, matrix, criteria, self.learning_method),
        )

    def get_ranking(self, ranking_id: str) -> RankingJob:
        with self._lock:
            job = self._jobs.get(ranking_id)
            if job is None:
                raise KeyError(ranking_id)
            return replace(
                job,
                input_rows=list(job.input_rows),
                ranking=list(job.ranking),
                learned_weights=dict(job.learned_weights),
            )

    def task(self, ranking_id: str) -> futures.Future[Any]:
        future = self._tasks.get(ranking_id)
        if future is None:
            return completed(self.get_ranking(ranking_id).status)
        return future

    def _method(self, name: str | None) -> McdaMethod:
        return self.default_method if name is None else resolve_method(name)

    def _require_service(self) -> RankingService:
        if self.service is None:
            raise ConfigurationError("no ranking service configured; set `ranking.url`")
        return self.service

    def _start(
        self,
        kind: JobKind,
        job_id: str,
        method: McdaMethod,
        rows: list[ExecutionResult],
        submit: Callable[[PerformanceMatrix], str | None],
    ) -> str:
        job = RankingJob(
            id=uuid.uuid4().hex,
            job_id=job_id,
            method=method.name,
            kind=kind,
            input_rows=[row.id for row in rows],
        )
        with self._lock:
            self._jobs[job.id] = job

        if not rows:
            LOGGER.info("Job %s has no qualifying executions; nothing to %s", job_id, kind)
            self._update(job.id, ExecutionStatus.finished, "No qualifying executions to process.")
            return job.id

        matrix = build_matrix(job_id, rows, self.catalog)
        self._update(job.id, ExecutionStatus.running, f"Submitting {len(matrix)} rows to the ranking service.")
        future = self.supervisor.submit(f"{kind}-{job.id[:8]}", self._run, job.id, kind, matrix, submit)
        self._tasks[job.id] = future
        future.add_done_callback(lambda _: self._tasks.pop(job.id, None))
        return job.id

    def _run(
        self,
        ranking_id: str,
        kind: JobKind,
        matrix: PerformanceMatrix,
        submit: Callable[[PerformanceMatrix], str | None],
    ) -> ExecutionStatus:
        try:
            handle = submit(matrix)
            if handle is None:
                return self._fail(ranking_id, "Ranking service did not accept the job.")
            LOGGER.info("Ranking job %s submitted as %s", ranking_id, handle)

            service = self._require_service()
            poll = poll_until(
                lambda: _settled(service.poll(handle)),
                interval=self.poll_interval,
                sleep=self._sleep,
            )
            assert poll is not None
            if poll.state == "failure":
                return self._fail(ranking_id, poll.reason or "Ranking service reported a failure.")
            if kind == "rank":
                self._store_ranking(ranking_id, poll)
            else:
                self._store_weights(ranking_id, poll)
        except RemoteServiceError as exc:
            return self._fail(ranking_id, f"Ranking service error: {exc.message}")
        except Exception as exc:
            LOGGER.exception("Ranking service crashed while processing job %s", ranking_id)
            return self._fail(ranking_id, f"Ranking service crashed: {exc}")
        return ExecutionStatus.finished

    def _store_ranking(self, ranking_id: str, poll: RankingPoll) -> None:
        if not poll.scores or not poll.ranking:
            raise RemoteServiceError("ranking output is missing `scores` or `ranking`")
        order = {result_id: index for index, result_id in enumerate(poll.ranking)}
        missing = sorted(set(poll.scores) - set(order))
        if missing:
            raise RemoteServiceError(f"ranking output does not place: {', '.join(missing)}")
        ranked = sorted(
            (
                RankedResult(result_id=result_id, position=order[result_id] + 1, score=score)
                for result_id, score in poll.scores.items()
            ),
            key=lambda item: item.position,
        )
        with self._lock:
            self._jobs[ranking_id].ranking = ranked
        self._update(ranking_id, ExecutionStatus.finished, "Ranking successfully completed.")

    def _store_weights(self, ranking_id: str, poll: RankingPoll) -> None:
        if not poll.weights:
            raise RemoteServiceError("learning output is missing `weights`")
        with self._lock:
            self._jobs[ranking_id].learned_weights = dict(poll.weights)
        self._update(ranking_id, ExecutionStatus.finished, "Weights successfully learned.")

    def _fail(self, ranking_id: str, reason: str) -> ExecutionStatus:
        LOGGER.warning("Ranking job %s failed: %s", ranking_id, reason)
        self._update(ranking_id, ExecutionStatus.failed, reason)
        return ExecutionStatus.failed

    def _update(self, ranking_id: str, status: ExecutionStatus, detail: str) -> None:
        with self._lock:
            job = self._jobs[ranking_id]
            job.status = status
            job.status_detail = detail


def _settled(poll: RankingPoll) -> RankingPoll | None:
    return None if poll.state == "pending" else poll
