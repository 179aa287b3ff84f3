"""Analyze stage: enrich one article with summary, sentiment and categories."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import Protocol

from news_monitor.analysis.llm import InferenceClient
from news_monitor.analysis.prompts import build_system_prompt, build_user_prompt
from news_monitor.analysis.schema import AnalysisRejection, parse_analysis_response
from news_monitor.errors import FailureKind
from news_monitor.http.crawler import CrawlResult
from news_monitor.models import AnalysisOutcome, AnalysisUpdate, ArticleView
from news_monitor.repository import ArticleRepository
from news_monitor.storage.common import utc_now

logger = logging.getLogger(__name__)

DEPENDENCY_NAME = "inference"


class ContentSource(Protocol):
    def crawl(self, url: str) -> CrawlResult:
        raise NotImplementedError


class AnalyzeStage:
    """Every call ends with ``ai_processed = true`` and either metadata or an error."""

    dependency = DEPENDENCY_NAME

    def __init__(
        self,
        repository: ArticleRepository,
        client: InferenceClient,
        *,
        allowed_categories: Sequence[str] = (),
        crawler: ContentSource | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._repository = repository
        self._client = client
        self._allowed_categories = tuple(allowed_categories)
        self._system_prompt = build_system_prompt(self._allowed_categories)
        self._crawler = crawler
        self._clock = clock

    def analyze_one(self, article: ArticleView) -> AnalysisOutcome:
        crawled = self._crawl(article)
        content = article.full_content or crawled
        call_started_at = self._clock()
        reply = self._client.complete(
            system_prompt=self._system_prompt,
            user_prompt=build_user_prompt(
                title=article.title,
                snippet=article.snippet,
                content=content,
            ),
        )

        if reply.content is None:
            return self._fail(
                article,
                reply.error or "Inference returned no content.",
                reply.failure_kind or FailureKind.TRANSIENT,
                external_call=reply.external_call,
                call_started_at=call_started_at,
                crawled=crawled,
            )

        parsed = parse_analysis_response(reply.content, allowed_categories=self._allowed_categories)
        if isinstance(parsed, AnalysisRejection):
            return self._fail(
                article,
                parsed.reason,
                FailureKind.PERMANENT,
                external_call=reply.external_call,
                call_started_at=call_started_at,
                crawled=crawled,
            )

        self._repository.update_analysis_result(
            article.article_id,
            AnalysisUpdate(
                ai_processed_at=utc_now(),
                summary=parsed.summary,
                sentiment=parsed.sentiment,
                categories=parsed.categories,
                full_content=crawled,
            ),
        )
        return AnalysisOutcome(
            success=True,
            external_call=reply.external_call,
            call_started_at=call_started_at,
        )

    def _crawl(self, article: ArticleView) -> str | None:
        if article.full_content or self._crawler is None:
            return None
        result = self._crawler.crawl(article.link)
        if result.content is None:
            logger.info(
                "Crawl skipped for article_id=%s, falling back to snippet: %s",
                article.article_id,
                result.error,
            )
        return result.content

    def _fail(
        self,
        article: ArticleView,
        reason: str,
        failure_kind: FailureKind,
        *,
        external_call: bool,
        call_started_at: float,
        crawled: str | None,
    ) -> AnalysisOutcome:
        message = f"{failure_kind.value}: {reason}"
        self._repository.update_analysis_result(
            article.article_id,
            AnalysisUpdate(ai_processed_at=utc_now(), ai_error=message, full_content=crawled),
        )
        logger.warning("Analysis failed (article_id=%s): %s", article.article_id, message)
        return AnalysisOutcome(
            success=False,
            error=message,
            failure_kind=failure_kind,
            external_call=external_call,
            call_started_at=call_started_at,
        )
