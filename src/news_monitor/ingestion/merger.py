"""Merge candidates from all source fetchers into the article store."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from news_monitor.ingestion.cleaning import matches_keyword
from news_monitor.ingestion.sources.base import SourceError, SourceFetcher
from news_monitor.models import CandidateArticle, IngestionResult, TopicView
from news_monitor.repository import ArticleRepository

logger = logging.getLogger(__name__)


class IngestionMerger:
    """Dedup candidates by link, tag matched topics, insert new rows.

    A failing fetcher contributes exactly one ``"<name>: <reason>"`` error and
    never blocks the others. Duplicates are counted as skipped.
    """

    def __init__(self, repository: ArticleRepository) -> None:
        self._repository = repository

    def merge(self, fetchers: Iterable[SourceFetcher]) -> IngestionResult:
        topics = self._repository.list_enabled_topics()
        result = IngestionResult()
        collected: list[CandidateArticle] = []

        for fetcher in fetchers:
            try:
                collected.extend(fetcher.fetch())
            except SourceError as error:
                logger.warning("Source %s failed: %s", fetcher.name, error)
                result.errors.append(f"{fetcher.name}: {error}")
            except Exception as error:  # noqa: BLE001
                logger.exception("Source %s failed unexpectedly", fetcher.name)
                result.errors.append(f"{fetcher.name}: {error or error.__class__.__name__}")

        candidates = dedupe_candidates(collected)
        for candidate in candidates:
            candidate.matched_topics = match_topics(candidate, topics, candidate.matched_topics)

        inserted = self._repository.insert_candidates(candidates)
        result.inserted = inserted.inserted
        result.skipped = inserted.skipped + (len(collected) - len(candidates))
        logger.info(
            "Ingestion merged %d candidates: inserted=%d skipped=%d errors=%d",
            len(collected),
            result.inserted,
            result.skipped,
            len(result.errors),
        )
        return result


def dedupe_candidates(candidates: Sequence[CandidateArticle]) -> list[CandidateArticle]:
    """Keep the first candidate per link, merging topic tags from later copies."""

    by_link: dict[str, CandidateArticle] = {}
    for candidate in candidates:
        link = candidate.link.strip()
        if not link:
            continue
        existing = by_link.get(link)
        if existing is None:
            candidate.link = link
            by_link[link] = candidate
            continue
        for topic in candidate.matched_topics:
            if topic not in existing.matched_topics:
                existing.matched_topics.append(topic)
    return list(by_link.values())


def match_topics(
    candidate: CandidateArticle,
    topics: Sequence[TopicView],
    preset: Sequence[str] = (),
) -> list[str]:
    """Case-insensitive keyword match over title and snippet, in topic order."""

    text = f"{candidate.title} {candidate.snippet or ''}"
    matched = list(preset)
    for topic in topics:
        if topic.name in matched:
            continue
        if any(matches_keyword(text, keyword) for keyword in topic.effective_keywords()):
            matched.append(topic.name)
    return matched
