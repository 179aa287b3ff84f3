"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from news_monitor.analysis.llm import InferenceResult
from news_monitor.decode.google_news import ResolveResult
from news_monitor.errors import FailureKind
from news_monitor.models import CandidateArticle, DecodeUpdate, SourceKind
from news_monitor.pacing import CancellationToken, Pacer
from news_monitor.repository import ArticleRepository

WRAPPED_PREFIX = "https://news.google.com/rss/articles/"

VALID_REPLY = (
    '{"summary": "Output rose after the new wells came online.", '
    '"sentiment": "positive", "categories": ["Production"]}'
)


def wrapped_link(token: str) -> str:
    """Aggregator link whose source URL id is ``CBMi<token>`` padded past the id minimum."""

    return f"{WRAPPED_PREFIX}CBMi{token.ljust(12, 'x')}?oc=5"


class FakeResolver:
    """Records calls; unknown links time out."""

    def __init__(self, destinations: dict[str, str] | None = None) -> None:
        self.destinations = destinations or {}
        self.calls: list[str] = []

    def resolve(self, link: str) -> ResolveResult:
        self.calls.append(link)
        if link in self.destinations:
            return ResolveResult(url=self.destinations[link], external_call=True)
        return ResolveResult(
            error="Resolver request failed: timeout",
            external_call=True,
            failure_kind=FailureKind.TRANSIENT,
        )


class FakeInference:
    """Returns scripted replies in order, then repeats the last one."""

    def __init__(self, replies: list[InferenceResult] | None = None) -> None:
        self.replies = replies or [InferenceResult(content=VALID_REPLY)]
        self.prompts: list[str] = []

    def complete(self, *, system_prompt: str, user_prompt: str) -> InferenceResult:
        assert system_prompt
        self.prompts.append(user_prompt)
        index = min(len(self.prompts) - 1, len(self.replies) - 1)
        return self.replies[index]


class FakeClock:
    """Monotonic clock that only advances when the pacer sleeps."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float, token: CancellationToken) -> bool:
        self.sleeps.append(seconds)
        self.now += seconds
        return token.cancelled


@pytest.fixture()
def repository(tmp_path: Path) -> Iterator[ArticleRepository]:
    repo = ArticleRepository(tmp_path / "pipeline.db", user_id="user-a", user_name="User A")
    repo.init_schema()
    yield repo
    repo.close()


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def pacer_factory(fake_clock: FakeClock) -> Callable[[], Pacer]:
    return lambda: Pacer(clock=fake_clock, sleeper=fake_clock.sleep)


@pytest.fixture()
def seed_articles(repository: ArticleRepository) -> Callable[..., list[str]]:
    """Insert articles and optionally move them past the decode stage; returns ids."""

    def _seed(
        links: list[str],
        *,
        decoded: bool = False,
        decode_failed: bool = False,
        snippet: str | None = "Snippet about production",
    ) -> list[str]:
        repository.insert_candidates(
            [
                CandidateArticle(
                    title=f"Title for {link}",
                    link=link,
                    source_kind=SourceKind.RSS,
                    snippet=snippet,
                )
                for link in links
            ],
        )
        by_link = {
            article.source_link: article.article_id
            for article in repository.list_decode_eligible()
        }
        ids = [by_link[link] for link in links]
        if decoded or decode_failed:
            for article_id in ids:
                repository.update_decode_result(
                    article_id,
                    DecodeUpdate(url_decoded=True, decode_failed=decode_failed),
                )
        return ids

    return _seed
