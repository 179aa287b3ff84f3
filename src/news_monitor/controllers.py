"""Controllers for pipeline CLI commands."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path

from news_monitor.analysis.llm import ChatCompletionsClient
from news_monitor.config import Settings
from news_monitor.decode.cache import DecodeCache
from news_monitor.decode.google_news import GoogleNewsResolver
from news_monitor.errors import (
    PipelineError,
    RequestValidationError,
    RunAlreadyActiveError,
    UnauthorizedError,
)
from news_monitor.http.crawler import ContentCrawler
from news_monitor.http.fetcher import HttpFetcher
from news_monitor.ingestion.merger import IngestionMerger
from news_monitor.ingestion.sources.base import SourceFetcher
from news_monitor.ingestion.sources.google_news import build_search_fetchers
from news_monitor.ingestion.sources.realtime_news import build_search_api_fetchers
from news_monitor.ingestion.sources.rss import RssFeedFetcher
from news_monitor.pacing import Pacer
from news_monitor.pipeline.events import ErrorEvent
from news_monitor.pipeline.orchestrator import PipelineOrchestrator, PipelineRun
from news_monitor.pipeline.registry import RunRegistry
from news_monitor.repository import ArticleRepository

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Command failed; ``line`` (if any) is the JSON error to print."""

    def __init__(self, line: str | None = None) -> None:
        super().__init__(line or "command failed")
        self.line = line


@dataclass(slots=True)
class PipelineCommand:
    """CLI inputs shared by decode, reset-failed and pending."""

    db_path: Path | None


@dataclass(slots=True)
class AnalyzeCommand:
    """CLI inputs for the analyze command."""

    db_path: Path | None
    limit: int | None
    live: bool


@dataclass(slots=True)
class IngestCommand:
    """CLI inputs for the ingest command."""

    db_path: Path | None
    feed_urls: tuple[str, ...]
    search: bool


@dataclass(slots=True)
class TopicAddCommand:
    """CLI inputs for adding or updating a topic."""

    db_path: Path | None
    name: str
    keywords: tuple[str, ...]
    enabled: bool


class PipelineCliController:
    """Coordinates pipeline command execution.

    Streaming commands return lazy iterators of NDJSON lines. Failures are
    raised as :class:`CommandError` carrying the JSON error line, so the
    caller decides how to exit.
    """

    def __init__(
        self,
        *,
        registry: RunRegistry | None = None,
        pacer_factory: Callable[[], Pacer] = Pacer,
    ) -> None:
        self._registry = registry or RunRegistry()
        self._pacer_factory = pacer_factory

    def decode_stream(self, command: PipelineCommand) -> Iterator[str]:
        with _translate_errors():
            settings = _settings(command.db_path)
            with _repository(settings) as repository, self._orchestrator(
                settings,
                repository,
            ) as orchestrator:
                yield from _stream(orchestrator.start_decode(repository))

    def analyze(self, command: AnalyzeCommand) -> Iterator[str]:
        with _translate_errors():
            settings = _settings(command.db_path)
            with _repository(settings) as repository, self._orchestrator(
                settings,
                repository,
            ) as orchestrator:
                if command.live:
                    yield from _stream(orchestrator.start_analyze(repository, command.limit))
                    return
                summary = orchestrator.analyze_batch(repository, command.limit)
                yield _json_line(summary.to_payload())

    def reset_failed(self, command: PipelineCommand) -> list[str]:
        with _translate_errors():
            settings = _settings(command.db_path)
            with _repository(settings) as repository:
                return [_json_line({"resetCount": repository.reset_failed_analyses()})]

    def pending(self, command: PipelineCommand) -> list[str]:
        with _translate_errors():
            settings = _settings(command.db_path)
            with _repository(settings) as repository:
                counts = repository.count_pending()
        return [
            _json_line(
                {
                    "decodePendingCount": counts.decode_pending,
                    "pendingCount": counts.analyze_pending,
                },
            ),
        ]

    def ingest(self, command: IngestCommand) -> list[str]:
        with _translate_errors():
            settings = _settings(command.db_path)
            feed_urls = command.feed_urls or settings.sources.rss_feed_urls
            with _repository(settings) as repository, HttpFetcher(
                timeout_seconds=settings.sources.request_timeout_seconds,
            ) as http:
                fetchers: list[SourceFetcher] = [RssFeedFetcher(url, http) for url in feed_urls]
                if command.search:
                    topics = repository.list_enabled_topics()
                    fetchers.extend(build_search_fetchers(topics, http, settings.sources))
                    fetchers.extend(build_search_api_fetchers(topics, http, settings.sources))
                result = IngestionMerger(repository).merge(fetchers)
        return [
            _json_line(
                {
                    "inserted": result.inserted,
                    "skipped": result.skipped,
                    "errors": result.errors,
                },
            ),
        ]

    def add_topic(self, command: TopicAddCommand) -> list[str]:
        with _translate_errors():
            settings = _settings(command.db_path)
            with _repository(settings) as repository:
                topic = repository.upsert_topic(
                    command.name,
                    command.keywords,
                    enabled=command.enabled,
                )
        return [_json_line({"name": topic.name, "keywords": topic.keywords, "enabled": topic.enabled})]

    def list_topics(self, command: PipelineCommand) -> list[str]:
        with _translate_errors():
            settings = _settings(command.db_path)
            with _repository(settings) as repository:
                topics = repository.list_topics()
        return [
            _json_line({"name": topic.name, "keywords": topic.keywords, "enabled": topic.enabled})
            for topic in topics
        ]

    @contextmanager
    def _orchestrator(
        self,
        settings: Settings,
        repository: ArticleRepository,
    ) -> Iterator[PipelineOrchestrator]:
        with ExitStack() as stack:
            resolver_http = stack.enter_context(
                HttpFetcher(timeout_seconds=settings.decode.request_timeout_seconds, max_retries=0),
            )
            inference_http = stack.enter_context(
                HttpFetcher(
                    timeout_seconds=settings.analysis.request_timeout_seconds,
                    max_retries=0,
                ),
            )
            crawler = None
            if settings.crawl.enabled:
                crawl_http = stack.enter_context(
                    HttpFetcher(timeout_seconds=settings.crawl.request_timeout_seconds),
                )
                crawler = ContentCrawler(crawl_http, max_chars=settings.crawl.max_chars)
            yield PipelineOrchestrator(
                settings,
                resolver=GoogleNewsResolver(resolver_http),
                inference_client=ChatCompletionsClient(settings.analysis, inference_http),
                crawler=crawler,
                cache=DecodeCache(repository),
                registry=self._registry,
                pacer_factory=self._pacer_factory,
            )


def _stream(run: PipelineRun) -> Iterator[str]:
    try:
        for event in run:
            yield _json_line(event.to_payload())
            if isinstance(event, ErrorEvent):
                raise CommandError()
    finally:
        run.close()


@contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except CommandError:
        raise
    except UnauthorizedError as error:
        raise CommandError(_json_line({"error": "Unauthorized"})) from error
    except RunAlreadyActiveError as error:
        raise CommandError(_json_line({"error": "AlreadyRunning", "message": str(error)})) from error
    except RequestValidationError as error:
        raise CommandError(_json_line({"error": "ValidationError", "message": str(error)})) from error
    except PipelineError as error:
        logger.exception("Pipeline command failed")
        raise CommandError(_json_line({"error": "Internal error"})) from error
    except Exception as error:
        logger.exception("Pipeline command failed unexpectedly")
        raise CommandError(_json_line({"error": "Internal error"})) from error


def _settings(db_path: Path | None) -> Settings:
    try:
        settings = Settings.from_env(db_path=db_path)
        settings.validate()
    except ValueError as error:
        raise RequestValidationError(str(error)) from error
    return settings


@contextmanager
def _repository(settings: Settings) -> Iterator[ArticleRepository]:
    repository = ArticleRepository(
        settings.db_path,
        user_id=settings.user_context.user_id,
        user_name=settings.user_context.user_name,
    )
    try:
        repository.init_schema()
        yield repository
    finally:
        repository.close()


def _json_line(payload: dict[str, object]) -> str:
    return json.dumps(payload, ensure_ascii=False)
