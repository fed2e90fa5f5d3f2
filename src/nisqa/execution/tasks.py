from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent import futures
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskSupervisor:
    """Runs each long-lived job on its own daemon thread.

    ``submit`` hands back a :class:`concurrent.futures.Future` that resolves
    when the job returns or raises; the job is never retried or cancelled.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._futures: list[futures.Future[Any]] = []

    def submit(self, name: str, fn: Callable[..., Any], *args: Any) -> futures.Future[Any]:
        future: futures.Future[Any] = futures.Future()
        future.set_running_or_notify_cancel()

        def run() -> None:
            try:
                value = fn(*args)
            except BaseException as exc:
                LOGGER.exception("Task %s crashed", name)
                future.set_exception(exc)
            else:
                future.set_result(value)

        with self._lock:
            self._futures.append(future)
        threading.Thread(target=run, name=f"nisqa-{name}", daemon=True).start()
        return future

    def wait(self, timeout: float | None = None) -> bool:
        """Wait for every submitted task; return ``False`` on timeout."""
        with self._lock:
            pending = list(self._futures)
        done, not_done = futures.wait(pending, timeout=timeout)
        with self._lock:
            self._futures = [future for future in self._futures if future not in done]
        return not not_done


def completed(value: Any) -> futures.Future[Any]:
    """A future already resolved to ``value``, for jobs whose task has been released."""
    future: futures.Future[Any] = futures.Future()
    future.set_result(value)
    return future
