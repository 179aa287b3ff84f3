"""Registry of in-flight runs, one per (owner, stage)."""

from __future__ import annotations

import logging
import threading

from news_monitor.errors import RunAlreadyActiveError
from news_monitor.models import Stage
from news_monitor.pacing import CancellationToken

logger = logging.getLogger(__name__)


class RunRegistry:
    """Thread-safe map from (owner, stage) to the active run's cancellation token."""

    def __init__(self) -> None:
        self._active: dict[tuple[str, Stage], CancellationToken] = {}
        self._lock = threading.Lock()

    def acquire(self, owner_id: str, stage: Stage) -> CancellationToken:
        key = (owner_id, stage)
        with self._lock:
            if key in self._active:
                raise RunAlreadyActiveError(owner_id, stage.value)
            token = CancellationToken()
            self._active[key] = token
        logger.info("Started %s run (user_id=%s).", stage.value, owner_id)
        return token

    def release(self, owner_id: str, stage: Stage, token: CancellationToken) -> None:
        """Drop the registration if it still belongs to ``token``; safe to repeat."""

        key = (owner_id, stage)
        with self._lock:
            if self._active.get(key) is token:
                del self._active[key]

    def is_active(self, owner_id: str, stage: Stage) -> bool:
        with self._lock:
            return (owner_id, stage) in self._active

    def cancel(self, owner_id: str, stage: Stage) -> bool:
        """Request cancellation of the active run; False when none is registered."""

        with self._lock:
            token = self._active.get((owner_id, stage))
        if token is None:
            return False
        token.cancel()
        return True
