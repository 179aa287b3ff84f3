"""Domain models shared by the store, stages, and orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from news_monitor.errors import FailureKind


class SourceKind(str, Enum):
    """Where an article was discovered."""

    AGGREGATOR_SEARCH = "aggregator-search"
    RSS = "rss"
    SEARCH_API = "search-api"


class Sentiment(str, Enum):
    """Closed sentiment set produced by analysis."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class Stage(str, Enum):
    """Pipeline stages that run under the orchestrator."""

    DECODE = "decode"
    ANALYZE = "analyze"


@dataclass(slots=True)
class ArticleView:
    """Read model of one persisted article."""

    article_id: str
    user_id: str
    title: str
    source_link: str
    link: str
    source_kind: SourceKind
    created_at: datetime
    updated_at: datetime
    snippet: str | None = None
    photo_url: str | None = None
    source_name: str | None = None
    source_url: str | None = None
    published_at: datetime | None = None
    url_decoded: bool = False
    decode_failed: bool = False
    full_content: str | None = None
    ai_processed: bool = False
    summary: str | None = None
    sentiment: Sentiment | None = None
    categories: list[str] | None = None
    ai_error: str | None = None
    ai_processed_at: datetime | None = None
    matched_topics: list[str] = field(default_factory=list)


@dataclass(slots=True)
class DecodeUpdate:
    """Atomic decode outcome for one article; ``link`` is only set on success."""

    url_decoded: bool
    decode_failed: bool
    link: str | None = None


@dataclass(slots=True)
class AnalysisUpdate:
    """Atomic analysis outcome; exactly one of ``summary`` or ``ai_error`` is set."""

    ai_processed_at: datetime
    summary: str | None = None
    sentiment: Sentiment | None = None
    categories: list[str] | None = None
    ai_error: str | None = None
    full_content: str | None = None


@dataclass(slots=True)
class PendingCounts:
    decode_pending: int
    analyze_pending: int


@dataclass(slots=True)
class CandidateArticle:
    """Raw article produced by a source fetcher, before dedup."""

    title: str
    link: str
    source_kind: SourceKind
    snippet: str | None = None
    photo_url: str | None = None
    source_name: str | None = None
    source_url: str | None = None
    published_at: datetime | None = None
    matched_topics: list[str] = field(default_factory=list)


@dataclass(slots=True)
class InsertResult:
    inserted: int = 0
    skipped: int = 0


@dataclass(slots=True)
class IngestionResult:
    """Outcome of merging every source fetcher into the store."""

    inserted: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class TopicView:
    name: str
    keywords: list[str]
    enabled: bool = True

    def effective_keywords(self) -> list[str]:
        """Keywords to match; the topic name stands in when none are configured."""

        return self.keywords or [self.name]


@dataclass(slots=True)
class DecodeOutcome:
    """Terminal per-item decode result; ``call_started_at`` is set when the resolver was called."""

    success: bool
    cached: bool = False
    external_call: bool = False
    error: str | None = None
    failure_kind: FailureKind | None = None
    call_started_at: float | None = None


@dataclass(slots=True)
class AnalysisOutcome:
    """Terminal per-item analysis result; ``call_started_at`` is when inference was called."""

    success: bool
    error: str | None = None
    failure_kind: FailureKind | None = None
    external_call: bool = True
    call_started_at: float | None = None
