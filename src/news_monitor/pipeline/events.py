"""Progress events emitted by a pipeline run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar


@dataclass(slots=True, frozen=True)
class ProgressEvent:
    type: ClassVar[str] = "progress"

    succeeded: int
    failed: int
    total: int

    def to_payload(self) -> dict[str, object]:
        return {
            "type": self.type,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "total": self.total,
        }


@dataclass(slots=True, frozen=True)
class CompleteEvent(ProgressEvent):
    type: ClassVar[str] = "complete"


@dataclass(slots=True, frozen=True)
class AbortedEvent(ProgressEvent):
    type: ClassVar[str] = "aborted"


@dataclass(slots=True, frozen=True)
class ErrorEvent:
    type: ClassVar[str] = "error"

    message: str = "Internal error"

    def to_payload(self) -> dict[str, object]:
        return {"type": self.type, "message": self.message}


PipelineEvent = ProgressEvent | ErrorEvent
TERMINAL_EVENT_TYPES = frozenset({CompleteEvent.type, AbortedEvent.type, ErrorEvent.type})
