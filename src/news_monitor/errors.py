"""Run-level error taxonomy for the article pipeline."""

from __future__ import annotations

from enum import Enum


class FailureKind(str, Enum):
    """Why a single item failed; shapes the stored message only."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"


class PipelineError(Exception):
    """Base class for errors surfaced to pipeline callers."""


class UnauthorizedError(PipelineError):
    """No caller identity could be established."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class RequestValidationError(PipelineError):
    """Request parameters are malformed and have no safe default."""


class RunAlreadyActiveError(PipelineError):
    """A run for the same owner and stage is already in flight."""

    def __init__(self, owner_id: str, stage: str) -> None:
        super().__init__(f"A {stage} run is already active for user {owner_id!r}.")
        self.owner_id = owner_id
        self.stage = stage


class InternalPipelineError(PipelineError):
    """A run stopped on an unexpected failure; details are only logged."""

    def __init__(self, message: str = "Internal error") -> None:
        super().__init__(message)
