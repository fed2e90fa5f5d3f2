from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


def poll_until(
    fetch: Callable[[], T | None],
    *,
    interval: float,
    attempts: int | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T | None:
    """Call ``fetch`` until it returns a value other than ``None``.

    ``fetch`` runs once immediately and then once per ``interval`` seconds.
    With ``attempts`` set, give up and return ``None`` after that many calls.
    Exceptions raised by ``fetch`` propagate to the caller.
    """
    calls = 0
    while True:
        value = fetch()
        calls += 1
        if value is not None:
            return value
        if attempts is not None and calls >= attempts:
            LOGGER.debug("Polling gave up after %d attempts", calls)
            return None
        sleep(interval)
