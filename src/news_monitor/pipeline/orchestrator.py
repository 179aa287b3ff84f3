"""Drive a stage over a snapshot of eligible articles and stream progress."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field

from news_monitor.analysis.llm import InferenceClient
from news_monitor.analysis.stage import AnalyzeStage, ContentSource
from news_monitor.config import Settings
from news_monitor.decode.cache import DecodeCache, extract_source_url_id
from news_monitor.decode.stage import DecodeStage, LinkResolver
from news_monitor.errors import InternalPipelineError
from news_monitor.models import AnalysisOutcome, ArticleView, DecodeOutcome, Stage
from news_monitor.pacing import CancellationToken, Pacer
from news_monitor.pipeline.events import (
    AbortedEvent,
    CompleteEvent,
    ErrorEvent,
    PipelineEvent,
    ProgressEvent,
)
from news_monitor.pipeline.registry import RunRegistry
from news_monitor.repository import ArticleRepository

logger = logging.getLogger(__name__)

ItemOutcome = DecodeOutcome | AnalysisOutcome


@dataclass(slots=True)
class AnalyzeBatchSummary:
    analyzed: int
    failed: int
    remaining: int
    errors: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, object]:
        return {
            "analyzed": self.analyzed,
            "failed": self.failed,
            "remaining": self.remaining,
            "errors": list(self.errors),
        }


class PipelineRun:
    """Lazy, finite, non-restartable stream of events for one run.

    Items are processed strictly in snapshot order, one per ``next()``.
    Counters only grow. The stream ends with exactly one of complete, aborted
    or error, unless :meth:`close` is called first, in which case no terminal
    event is produced. The registry slot is released when the stream ends.
    """

    def __init__(
        self,
        *,
        stage: Stage,
        owner_id: str,
        items: Sequence[ArticleView],
        process: Callable[[ArticleView], ItemOutcome],
        dependency: str,
        min_interval_seconds: float,
        pacer: Pacer,
        token: CancellationToken,
        release: Callable[[], None],
    ) -> None:
        self.stage = stage
        self.owner_id = owner_id
        self.total = len(items)
        self.succeeded = 0
        self.failed = 0
        self.errors: list[str] = []
        self._items = list(items)
        self._process = process
        self._dependency = dependency
        self._min_interval_seconds = min_interval_seconds
        self._pacer = pacer
        self._token = token
        self._release = release
        self._events = self._drive()

    def __iter__(self) -> Iterator[PipelineEvent]:
        return self

    def __next__(self) -> PipelineEvent:
        return next(self._events)

    @property
    def cancelled(self) -> bool:
        return self._token.cancelled

    def cancel(self) -> None:
        """Request cooperative cancellation; takes effect before the next item."""

        self._token.cancel()

    def close(self) -> None:
        """Stop without a terminal event, as on client disconnect.

        Must be called from the thread consuming the events. Other threads use
        :meth:`cancel`, which takes effect before the next item.
        """

        self._token.cancel()
        self._events.close()
        self._release()

    def _drive(self) -> Iterator[PipelineEvent]:
        try:
            last_index = self.total - 1
            for index, article in enumerate(self._items):
                if self._token.cancelled:
                    logger.info(
                        "%s run cancelled (user_id=%s succeeded=%d failed=%d total=%d).",
                        self.stage.value,
                        self.owner_id,
                        self.succeeded,
                        self.failed,
                        self.total,
                    )
                    yield AbortedEvent(self.succeeded, self.failed, self.total)
                    return

                try:
                    outcome = self._process(article)
                except Exception:
                    logger.exception(
                        "%s run stopped on article_id=%s (user_id=%s).",
                        self.stage.value,
                        article.article_id,
                        self.owner_id,
                    )
                    yield ErrorEvent()
                    return

                if outcome.success:
                    self.succeeded += 1
                else:
                    self.failed += 1
                    self.errors.append(f"{article.article_id}: {outcome.error}")
                yield ProgressEvent(self.succeeded, self.failed, self.total)

                if outcome.external_call and outcome.call_started_at is not None:
                    self._pacer.record_call(self._dependency, outcome.call_started_at)
                    if index < last_index:
                        self._pacer.wait(
                            self._dependency,
                            self._min_interval_seconds,
                            self._token,
                        )

            logger.info(
                "%s run completed (user_id=%s succeeded=%d failed=%d total=%d).",
                self.stage.value,
                self.owner_id,
                self.succeeded,
                self.failed,
                self.total,
            )
            yield CompleteEvent(self.succeeded, self.failed, self.total)
        finally:
            self._release()


class PipelineOrchestrator:
    """Starts decode and analyze runs; at most one per (owner, stage)."""

    def __init__(
        self,
        settings: Settings,
        *,
        resolver: LinkResolver,
        inference_client: InferenceClient,
        crawler: ContentSource | None = None,
        cache: DecodeCache | None = None,
        registry: RunRegistry | None = None,
        pacer_factory: Callable[[], Pacer] = Pacer,
    ) -> None:
        self.settings = settings
        self.resolver = resolver
        self.inference_client = inference_client
        self.crawler = crawler
        self.cache = cache or DecodeCache()
        self.registry = registry or RunRegistry()
        self.pacer_factory = pacer_factory

    def start_decode(self, repository: ArticleRepository) -> PipelineRun:
        owner_id = repository.owner_id
        token = self.registry.acquire(owner_id, Stage.DECODE)
        try:
            items = repository.list_decode_eligible()
            source_url_ids = [
                source_url_id
                for article in items
                if (source_url_id := extract_source_url_id(article.link)) is not None
            ]
            if source_url_ids:
                self.cache.lookup_batch(source_url_ids)
        except BaseException:
            self.registry.release(owner_id, Stage.DECODE, token)
            raise

        pacer = self.pacer_factory()
        stage = DecodeStage(repository, self.resolver, clock=pacer.now)
        return self._build_run(
            stage=Stage.DECODE,
            owner_id=owner_id,
            items=items,
            process=lambda article: stage.decode_one(article, self.cache),
            dependency=stage.dependency,
            min_interval_seconds=self.settings.decode.min_interval_seconds,
            pacer=pacer,
            token=token,
        )

    def start_analyze(self, repository: ArticleRepository, limit: int | None = None) -> PipelineRun:
        owner_id = repository.owner_id
        effective_limit = self.settings.clamp_analyze_limit(limit)
        token = self.registry.acquire(owner_id, Stage.ANALYZE)
        try:
            items = repository.list_analyze_eligible(effective_limit)
        except BaseException:
            self.registry.release(owner_id, Stage.ANALYZE, token)
            raise

        pacer = self.pacer_factory()
        stage = AnalyzeStage(
            repository,
            self.inference_client,
            allowed_categories=self.settings.analysis.allowed_categories,
            crawler=self.crawler,
            clock=pacer.now,
        )
        return self._build_run(
            stage=Stage.ANALYZE,
            owner_id=owner_id,
            items=items,
            process=stage.analyze_one,
            dependency=stage.dependency,
            min_interval_seconds=self.settings.analysis.min_interval_seconds,
            pacer=pacer,
            token=token,
        )

    def analyze_batch(
        self,
        repository: ArticleRepository,
        limit: int | None = None,
    ) -> AnalyzeBatchSummary:
        """Drain an analyze run and summarize it as a single response."""

        run = self.start_analyze(repository, limit)
        for event in run:
            if isinstance(event, ErrorEvent):
                raise InternalPipelineError(event.message)
        return AnalyzeBatchSummary(
            analyzed=run.succeeded,
            failed=run.failed,
            remaining=repository.count_pending().analyze_pending,
            errors=run.errors,
        )

    def cancel(self, owner_id: str, stage: Stage) -> bool:
        return self.registry.cancel(owner_id, stage)

    def _build_run(
        self,
        *,
        stage: Stage,
        owner_id: str,
        items: Sequence[ArticleView],
        process: Callable[[ArticleView], ItemOutcome],
        dependency: str,
        min_interval_seconds: float,
        pacer: Pacer,
        token: CancellationToken,
    ) -> PipelineRun:
        logger.info(
            "Prepared %s run with %d eligible articles (user_id=%s).",
            stage.value,
            len(items),
            owner_id,
        )
        return PipelineRun(
            stage=stage,
            owner_id=owner_id,
            items=items,
            process=process,
            dependency=dependency,
            min_interval_seconds=min_interval_seconds,
            pacer=pacer,
            token=token,
            release=lambda: self.registry.release(owner_id, stage, token),
        )
