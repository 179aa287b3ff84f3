"""Real-Time News Data search API fetcher, one query per topic keyword."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from news_monitor.config import SourceSettings
from news_monitor.http.fetcher import HttpFetcher
from news_monitor.ingestion.cleaning import html_to_text
from news_monitor.ingestion.sources.base import (
    SourceError,
    TemporarySourceError,
    error_for_status,
)
from news_monitor.models import CandidateArticle, SourceKind, TopicView

logger = logging.getLogger(__name__)

API_HOST = "real-time-news-data.p.rapidapi.com"
SEARCH_URL = f"https://{API_HOST}/search"
MAX_QUERY_LENGTH = 200
MAX_RESULTS = 100
MAX_BACKOFF_SECONDS = 30.0


class RealTimeNewsFetcher:
    """Keyword search against the hosted news API; links are publisher URLs."""

    def __init__(
        self,
        query: str,
        fetcher: HttpFetcher,
        *,
        api_key: str,
        limit: int = 50,
        language: str = "id",
        country: str = "ID",
        topic_name: str | None = None,
        max_attempts: int = 3,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.query = query.strip()
        self.topic_name = topic_name
        self.name = f"search-api:{self.query}"
        self._fetcher = fetcher
        self._api_key = api_key
        self._params = {
            "query": self.query,
            "limit": str(min(max(1, limit), MAX_RESULTS)),
            "lang": language,
            "country": country,
        }
        self._max_attempts = max_attempts
        self._backoff_seconds = backoff_seconds
        self._sleep = sleep

    def fetch(self) -> list[CandidateArticle]:
        if not 1 <= len(self.query) <= MAX_QUERY_LENGTH:
            raise SourceError(
                message=f"Search query must be 1-{MAX_QUERY_LENGTH} characters.",
                code="invalid_query",
            )
        if not self._api_key:
            raise SourceError(
                message="Search API key is not configured.",
                code="missing_api_key",
            )

        payload = self._request()
        items = payload.get("data")
        if payload.get("status") != "OK" or not isinstance(items, list):
            raise SourceError(
                message=f"Unexpected response: status={payload.get('status')}",
                code="unexpected_response",
            )

        candidates = [
            normalize_article(item, self.topic_name)
            for item in items
            if isinstance(item, dict) and item.get("title") and item.get("link")
        ]
        logger.info("Fetched %d search API results for %r", len(candidates), self.query)
        return candidates

    def _request(self) -> dict[str, Any]:
        attempt = 0
        last_error: TemporarySourceError | None = None
        while attempt < self._max_attempts:
            attempt += 1
            response = self._fetcher.fetch(
                SEARCH_URL,
                params=self._params,
                headers={"x-rapidapi-key": self._api_key, "x-rapidapi-host": API_HOST},
            )
            if response.is_success:
                return _decode_payload(response.content)

            error = error_for_status(
                response.status_code,
                response.error,
                source=self.name,
                retry_after=response.retry_after,
            )
            if not isinstance(error, TemporarySourceError):
                raise error
            last_error = error

            if attempt < self._max_attempts:
                backoff = min(
                    self._backoff_seconds * 2 ** (attempt - 1),
                    MAX_BACKOFF_SECONDS,
                )
                if error.retry_after is not None:
                    backoff = max(backoff, float(error.retry_after))
                logger.warning(
                    "Attempt %d failed for %r, retrying in %.1fs: %s",
                    attempt,
                    self.query,
                    backoff,
                    error,
                )
                self._sleep(backoff)

        if last_error is None:
            raise TemporarySourceError(message="Search API request failed", code="unknown")
        raise last_error


def normalize_article(item: dict[str, Any], topic_name: str | None = None) -> CandidateArticle:
    return CandidateArticle(
        title=str(item["title"]).strip(),
        link=str(item["link"]).strip(),
        source_kind=SourceKind.SEARCH_API,
        snippet=html_to_text(item.get("snippet")) or None,
        photo_url=item.get("photo_url") or None,
        source_name=item.get("source_name") or None,
        source_url=item.get("source_url") or None,
        published_at=normalize_date(item.get("published_datetime_utc")),
        matched_topics=[topic_name] if topic_name else [],
    )


def normalize_date(raw_value: str | None) -> datetime | None:
    """Parse the API timestamp, which may use a space instead of ``T``."""

    if not raw_value:
        return None
    value = raw_value.strip()
    if "T" not in value:
        value = value.replace(" ", "T", 1)
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def build_search_api_fetchers(
    topics: Sequence[TopicView],
    fetcher: HttpFetcher,
    settings: SourceSettings,
) -> list[RealTimeNewsFetcher]:
    """One fetcher per keyword, capped per topic; empty when no key is configured."""

    if not settings.search_api_key:
        return []
    fetchers: list[RealTimeNewsFetcher] = []
    for topic in topics:
        for keyword in topic.effective_keywords()[: settings.max_keywords_per_topic]:
            fetchers.append(
                RealTimeNewsFetcher(
                    keyword,
                    fetcher,
                    api_key=settings.search_api_key,
                    limit=settings.search_api_limit,
                    language=settings.search_language,
                    country=settings.search_region,
                    topic_name=topic.name,
                    max_attempts=settings.search_api_max_attempts,
                    backoff_seconds=settings.search_api_backoff_seconds,
                ),
            )
    return fetchers


def _decode_payload(content: str) -> dict[str, Any]:
    try:
        payload = json.loads(content)
    except json.JSONDecodeError as error:
        raise SourceError(
            message="Invalid JSON from search API",
            code="invalid_json",
        ) from error
    if not isinstance(payload, dict):
        raise SourceError(message="Unexpected response: status=None", code="unexpected_response")
    return payload
