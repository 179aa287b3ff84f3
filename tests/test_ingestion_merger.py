from __future__ import annotations

import allure

from news_monitor.ingestion.merger import IngestionMerger, dedupe_candidates, match_topics
from news_monitor.ingestion.sources.base import TemporarySourceError
from news_monitor.models import CandidateArticle, SourceKind, TopicView

pytestmark = [
    allure.epic("Ingestion"),
    allure.feature("Ingestion Merger"),
]


class StaticFetcher:
    def __init__(self, name: str, candidates: list[CandidateArticle]) -> None:
        self.name = name
        self._candidates = candidates

    def fetch(self) -> list[CandidateArticle]:
        return list(self._candidates)


class FailingFetcher:
    def __init__(self, name: str, error: Exception) -> None:
        self.name = name
        self._error = error

    def fetch(self) -> list[CandidateArticle]:
        raise self._error


def _candidate(link: str, title: str = "Offshore output rises", topics=None) -> CandidateArticle:
    return CandidateArticle(
        title=title,
        link=link,
        source_kind=SourceKind.RSS,
        matched_topics=list(topics or []),
    )


def test_merge_collects_one_error_per_failed_fetcher(repository) -> None:
    result = IngestionMerger(repository).merge(
        [
            FailingFetcher("rss:a", TemporarySourceError(message="Temporary HTTP error: 503")),
            StaticFetcher("rss:b", [_candidate("https://pub.example/1")]),
            FailingFetcher("rss:c", RuntimeError("boom")),
        ],
    )

    assert result.inserted == 1
    assert result.errors == ["rss:a: Temporary HTTP error: 503", "rss:c: boom"]


def test_merge_counts_batch_and_store_duplicates_as_skipped(repository) -> None:
    IngestionMerger(repository).merge([StaticFetcher("rss:a", [_candidate("https://pub.example/1")])])

    result = IngestionMerger(repository).merge(
        [
            StaticFetcher("rss:a", [_candidate("https://pub.example/1"), _candidate("https://pub.example/2")]),
            StaticFetcher("rss:b", [_candidate("https://pub.example/2")]),
        ],
    )

    assert (result.inserted, result.skipped, result.errors) == (1, 2, [])
    assert repository.count_pending().decode_pending == 2


def test_merge_tags_matching_enabled_topics(repository) -> None:
    repository.upsert_topic("Offshore", ["offshore"], enabled=True)
    repository.upsert_topic("Refining", ["refinery"], enabled=True)
    repository.upsert_topic("Offshore Disabled", ["output"], enabled=False)

    IngestionMerger(repository).merge(
        [StaticFetcher("rss:a", [_candidate("https://pub.example/1", topics=["Search"])])],
    )

    (article,) = repository.list_decode_eligible()
    assert article.matched_topics == ["Search", "Offshore"]


def test_dedupe_merges_topics_and_drops_blank_links() -> None:
    kept = dedupe_candidates(
        [
            _candidate(" https://pub.example/1 ", topics=["A"]),
            _candidate("https://pub.example/1", topics=["B", "A"]),
            _candidate("   "),
        ],
    )

    assert len(kept) == 1
    assert kept[0].link == "https://pub.example/1"
    assert kept[0].matched_topics == ["A", "B"]


def test_match_topics_falls_back_to_topic_name() -> None:
    candidate = CandidateArticle(
        title="LNG cargo delayed",
        link="https://pub.example/lng",
        source_kind=SourceKind.RSS,
        snippet="Shipping update",
    )

    assert match_topics(candidate, [TopicView(name="lng", keywords=[])]) == ["lng"]
    assert match_topics(candidate, [TopicView(name="Coal", keywords=["coal"])]) == []
