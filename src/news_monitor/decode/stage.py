"""Decode stage: replace wrapped aggregator links with publisher URLs."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

from news_monitor.decode.cache import DecodeCache, extract_source_url_id, is_wrapped_url
from news_monitor.decode.google_news import ResolveResult
from news_monitor.errors import FailureKind
from news_monitor.models import ArticleView, DecodeOutcome, DecodeUpdate
from news_monitor.repository import ArticleRepository

logger = logging.getLogger(__name__)

DEPENDENCY_NAME = "url-resolver"


class LinkResolver(Protocol):
    """External URL-resolution collaborator."""

    def resolve(self, link: str) -> ResolveResult:
        raise NotImplementedError


class DecodeStage:
    """Resolve and persist one article at a time; every call ends in stored state."""

    dependency = DEPENDENCY_NAME

    def __init__(
        self,
        repository: ArticleRepository,
        resolver: LinkResolver,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._repository = repository
        self._resolver = resolver
        self._clock = clock

    def decode_one(self, article: ArticleView, cache: DecodeCache) -> DecodeOutcome:
        link = article.link
        if not is_wrapped_url(link):
            self._repository.update_decode_result(
                article.article_id,
                DecodeUpdate(url_decoded=True, decode_failed=False),
            )
            return DecodeOutcome(success=True)

        source_url_id = extract_source_url_id(link)
        if source_url_id is not None:
            cached_url = cache.lookup(source_url_id)
            if cached_url is not None:
                self._persist_success(article, cached_url)
                return DecodeOutcome(success=True, cached=True)

        call_started_at = self._clock()
        result = self._resolver.resolve(link)
        destination = (result.url or "").strip()
        if not destination:
            error = result.error or "Resolver returned an empty destination."
            failure_kind = result.failure_kind or FailureKind.PERMANENT
            self._repository.update_decode_result(
                article.article_id,
                DecodeUpdate(url_decoded=True, decode_failed=True),
            )
            logger.warning(
                "Decode failed (article_id=%s kind=%s): %s",
                article.article_id,
                failure_kind.value,
                error,
            )
            return DecodeOutcome(
                success=False,
                external_call=result.external_call,
                error=error,
                failure_kind=failure_kind,
                call_started_at=call_started_at,
            )

        if source_url_id is not None:
            cache.store(source_url_id, destination, source_url=link)
        self._persist_success(article, destination)
        return DecodeOutcome(
            success=True,
            external_call=result.external_call,
            call_started_at=call_started_at,
        )

    def _persist_success(self, article: ArticleView, destination: str) -> None:
        self._repository.update_decode_result(
            article.article_id,
            DecodeUpdate(url_decoded=True, decode_failed=False, link=destination),
        )
