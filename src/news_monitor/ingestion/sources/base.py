"""Common source fetcher contracts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from news_monitor.models import CandidateArticle

RETRYABLE_HTTP_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


@dataclass(slots=True)
class SourceError(Exception):
    """Base source fetch error."""

    message: str
    code: str = "source_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class TemporarySourceError(SourceError):
    """Source failed in a way that may succeed on the next ingest."""

    retry_after: int | None = None


@runtime_checkable
class SourceFetcher(Protocol):
    """Produces raw candidate articles from one source."""

    name: str

    def fetch(self) -> list[CandidateArticle]:
        """Fetch the current candidates; raise :class:`SourceError` on failure."""
        raise NotImplementedError


def error_for_status(
    status_code: int,
    detail: str | None,
    *,
    source: str,
    retry_after: int | None = None,
) -> SourceError:
    if status_code == 0 or status_code in RETRYABLE_HTTP_STATUS_CODES:
        return TemporarySourceError(
            message=f"Temporary HTTP error from {source}: {detail or status_code}",
            code=str(status_code or "network"),
            retry_after=retry_after,
        )
    return SourceError(
        message=f"HTTP error from {source}: {detail or status_code}",
        code=str(status_code),
    )
