"""Google News search feed fetcher, one query per topic keyword."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from news_monitor.config import SourceSettings
from news_monitor.http.fetcher import HttpFetcher
from news_monitor.ingestion.cleaning import html_to_text, split_aggregator_title
from news_monitor.ingestion.sources.rss import fetch_feed_entries
from news_monitor.models import CandidateArticle, SourceKind, TopicView

logger = logging.getLogger(__name__)

SEARCH_FEED_URL = "https://news.google.com/rss/search"


class GoogleNewsSearchFetcher:
    """Search feed for one query; links stay wrapped until the decode stage."""

    def __init__(
        self,
        query: str,
        fetcher: HttpFetcher,
        *,
        language: str = "id",
        region: str = "ID",
        topic_name: str | None = None,
    ) -> None:
        self.query = query.strip()
        self.topic_name = topic_name
        self.name = f"google-news:{self.query}"
        self._fetcher = fetcher
        self._params = {
            "q": self.query,
            "hl": language,
            "gl": region,
            "ceid": f"{region}:{language}",
        }

    def fetch(self) -> list[CandidateArticle]:
        entries = fetch_feed_entries(self._fetcher, SEARCH_FEED_URL, params=self._params)
        candidates: list[CandidateArticle] = []
        for entry in entries:
            title, source_name = split_aggregator_title(entry.title)
            candidates.append(
                CandidateArticle(
                    title=title,
                    link=entry.link,
                    source_kind=SourceKind.AGGREGATOR_SEARCH,
                    snippet=html_to_text(entry.summary) or None,
                    source_name=source_name or entry.source_name,
                    source_url=entry.source_url,
                    published_at=entry.published_at,
                    matched_topics=[self.topic_name] if self.topic_name else [],
                ),
            )
        logger.info("Fetched %d search results for %r", len(candidates), self.query)
        return candidates


def build_search_fetchers(
    topics: Sequence[TopicView],
    fetcher: HttpFetcher,
    settings: SourceSettings,
) -> list[GoogleNewsSearchFetcher]:
    """One fetcher per keyword, capped per topic."""

    fetchers: list[GoogleNewsSearchFetcher] = []
    for topic in topics:
        for keyword in topic.effective_keywords()[: settings.max_keywords_per_topic]:
            fetchers.append(
                GoogleNewsSearchFetcher(
                    keyword,
                    fetcher,
                    language=settings.search_language,
                    region=settings.search_region,
                    topic_name=topic.name,
                ),
            )
    return fetchers
