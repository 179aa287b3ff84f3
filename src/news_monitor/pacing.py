"""Cooperative cancellation and per-dependency call pacing."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cancellation signal shared by a run and whoever may stop it."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return True if cancelled meanwhile."""

        if seconds <= 0:
            return self._event.is_set()
        return self._event.wait(seconds)


Sleeper = Callable[[float, CancellationToken], bool]


def _token_sleep(seconds: float, token: CancellationToken) -> bool:
    return token.wait(seconds)


class Pacer:
    """Keeps consecutive calls to one dependency at least ``min_interval`` apart.

    Calls are measured start-to-start: only the remainder of the interval not
    already spent on the previous call is waited. Dependencies are tracked
    independently.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleeper: Sleeper = _token_sleep,
    ) -> None:
        self._clock = clock
        self._sleeper = sleeper
        self._last_call_started: dict[str, float] = {}

    def now(self) -> float:
        return self._clock()

    def record_call(self, dependency: str, started_at: float) -> None:
        self._last_call_started[dependency] = started_at

    def wait(
        self,
        dependency: str,
        min_interval_seconds: float,
        token: CancellationToken,
    ) -> bool:
        """Block until the next call may start. Return False when cancelled."""

        if token.cancelled:
            return False
        last_started = self._last_call_started.get(dependency)
        if last_started is None or min_interval_seconds <= 0:
            return True
        remaining = min_interval_seconds - (self._clock() - last_started)
        if remaining <= 0:
            return True
        logger.debug("Pacing %s: waiting %.3fs.", dependency, remaining)
        cancelled = self._sleeper(remaining, token)
        return not cancelled and not token.cancelled
