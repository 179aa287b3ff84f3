"""Runtime configuration for the article pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

DEFAULT_CATEGORIES: tuple[str, ...] = (
    "Production",
    "Exploration",
    "Regulation",
    "Investment",
    "Environment",
    "Infrastructure",
    "Safety",
    "Personnel",
    "Market",
    "Community",
    "Technology",
    "General",
)


@dataclass(slots=True)
class DecodeSettings:
    """Decode-stage pacing and resolver settings."""

    min_interval_seconds: float = 3.0
    request_timeout_seconds: float = 10.0


@dataclass(slots=True)
class AnalysisSettings:
    """Analyze-stage limits and inference client settings."""

    default_limit: int = 10
    max_limit: int = 50
    min_interval_seconds: float = 0.5
    request_timeout_seconds: float = 30.0
    api_base: str = "https://api.siliconflow.cn/v1"
    api_key: str = ""
    model: str = "meta-llama/Llama-3.3-70B-Instruct"
    temperature: float = 0.3
    max_tokens: int = 512
    allowed_categories: tuple[str, ...] = DEFAULT_CATEGORIES


@dataclass(slots=True)
class CrawlSettings:
    """Full-content crawl settings used before analysis."""

    enabled: bool = True
    request_timeout_seconds: float = 15.0
    max_chars: int = 12_000


@dataclass(slots=True)
class SourceSettings:
    """Source fetcher settings."""

    rss_feed_urls: tuple[str, ...] = ()
    search_language: str = "id"
    search_region: str = "ID"
    max_keywords_per_topic: int = 5
    request_timeout_seconds: float = 30.0
    search_api_key: str = ""
    search_api_limit: int = 50
    search_api_max_attempts: int = 3
    search_api_backoff_seconds: float = 1.0


@dataclass(slots=True)
class UserContextSettings:
    """Caller identity settings."""

    user_id: str = "default_user"
    user_name: str = "Default User"


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".news_monitor.db")
    decode: DecodeSettings = field(default_factory=DecodeSettings)
    analysis: AnalysisSettings = field(default_factory=AnalysisSettings)
    crawl: CrawlSettings = field(default_factory=CrawlSettings)
    sources: SourceSettings = field(default_factory=SourceSettings)
    user_context: UserContextSettings = field(default_factory=UserContextSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("NEWS_MONITOR_DB_PATH", ".news_monitor.db")),
            decode=DecodeSettings(
                min_interval_seconds=float(
                    os.getenv("NEWS_MONITOR_DECODE_MIN_INTERVAL_SECONDS", "3.0"),
                ),
                request_timeout_seconds=float(
                    os.getenv("NEWS_MONITOR_DECODE_TIMEOUT_SECONDS", "10.0"),
                ),
            ),
            analysis=AnalysisSettings(
                default_limit=int(os.getenv("NEWS_MONITOR_ANALYZE_DEFAULT_LIMIT", "10")),
                max_limit=int(os.getenv("NEWS_MONITOR_ANALYZE_MAX_LIMIT", "50")),
                min_interval_seconds=float(
                    os.getenv("NEWS_MONITOR_ANALYZE_MIN_INTERVAL_SECONDS", "0.5"),
                ),
                request_timeout_seconds=float(
                    os.getenv("NEWS_MONITOR_ANALYZE_TIMEOUT_SECONDS", "30.0"),
                ),
                api_base=os.getenv("NEWS_MONITOR_LLM_API_BASE", "https://api.siliconflow.cn/v1"),
                api_key=os.getenv("NEWS_MONITOR_LLM_API_KEY", ""),
                model=os.getenv("NEWS_MONITOR_LLM_MODEL", "meta-llama/Llama-3.3-70B-Instruct"),
                temperature=float(os.getenv("NEWS_MONITOR_LLM_TEMPERATURE", "0.3")),
                max_tokens=int(os.getenv("NEWS_MONITOR_LLM_MAX_TOKENS", "512")),
                allowed_categories=_collect_categories(),
            ),
            crawl=CrawlSettings(
                enabled=_env_bool("NEWS_MONITOR_CRAWL_ENABLED", default=True),
                request_timeout_seconds=float(
                    os.getenv("NEWS_MONITOR_CRAWL_TIMEOUT_SECONDS", "15.0"),
                ),
                max_chars=int(os.getenv("NEWS_MONITOR_CRAWL_MAX_CHARS", "12000")),
            ),
            sources=SourceSettings(
                rss_feed_urls=_split_csv(os.getenv("NEWS_MONITOR_RSS_FEED_URLS", "")),
                search_language=os.getenv("NEWS_MONITOR_SEARCH_LANGUAGE", "id"),
                search_region=os.getenv("NEWS_MONITOR_SEARCH_REGION", "ID"),
                max_keywords_per_topic=int(
                    os.getenv("NEWS_MONITOR_MAX_KEYWORDS_PER_TOPIC", "5"),
                ),
                request_timeout_seconds=float(
                    os.getenv("NEWS_MONITOR_SOURCE_TIMEOUT_SECONDS", "30.0"),
                ),
                search_api_key=os.getenv("NEWS_MONITOR_SEARCH_API_KEY", ""),
                search_api_limit=int(os.getenv("NEWS_MONITOR_SEARCH_API_LIMIT", "50")),
                search_api_max_attempts=int(
                    os.getenv("NEWS_MONITOR_SEARCH_API_MAX_ATTEMPTS", "3"),
                ),
                search_api_backoff_seconds=float(
                    os.getenv("NEWS_MONITOR_SEARCH_API_BACKOFF_SECONDS", "1.0"),
                ),
            ),
            user_context=UserContextSettings(
                user_id=os.getenv("NEWS_MONITOR_USER_ID", "default_user"),
                user_name=os.getenv("NEWS_MONITOR_USER_NAME", "Default User"),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error on nonsensical limits and intervals."""

        if self.analysis.max_limit <= 0:
            raise ValueError("NEWS_MONITOR_ANALYZE_MAX_LIMIT must be > 0.")
        if not 1 <= self.analysis.default_limit <= self.analysis.max_limit:
            raise ValueError(
                "NEWS_MONITOR_ANALYZE_DEFAULT_LIMIT must be between 1 and "
                f"NEWS_MONITOR_ANALYZE_MAX_LIMIT ({self.analysis.max_limit}).",
            )
        if self.decode.min_interval_seconds < 0:
            raise ValueError("NEWS_MONITOR_DECODE_MIN_INTERVAL_SECONDS must be >= 0.")
        if self.analysis.min_interval_seconds < 0:
            raise ValueError("NEWS_MONITOR_ANALYZE_MIN_INTERVAL_SECONDS must be >= 0.")
        for name, value in (
            ("NEWS_MONITOR_DECODE_TIMEOUT_SECONDS", self.decode.request_timeout_seconds),
            ("NEWS_MONITOR_ANALYZE_TIMEOUT_SECONDS", self.analysis.request_timeout_seconds),
            ("NEWS_MONITOR_CRAWL_TIMEOUT_SECONDS", self.crawl.request_timeout_seconds),
        ):
            if value <= 0:
                raise ValueError(f"{name} must be > 0.")
        if self.sources.max_keywords_per_topic <= 0:
            raise ValueError("NEWS_MONITOR_MAX_KEYWORDS_PER_TOPIC must be > 0.")
        if self.sources.search_api_max_attempts <= 0:
            raise ValueError("NEWS_MONITOR_SEARCH_API_MAX_ATTEMPTS must be > 0.")
        for feed_url in self.sources.rss_feed_urls:
            validate_feed_url(feed_url)

    def clamp_analyze_limit(self, limit: int | None) -> int:
        """Clamp a caller-supplied limit into ``[1, max_limit]``."""

        if limit is None:
            return self.analysis.default_limit
        return max(1, min(limit, self.analysis.max_limit))


def validate_feed_url(value: str) -> None:
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(
            "Invalid RSS feed URL: "
            f"{value!r}. Expected an absolute URL with http:// or https:// scheme.",
        )


def _collect_categories() -> tuple[str, ...]:
    raw = os.getenv("NEWS_MONITOR_ALLOWED_CATEGORIES")
    if raw is None:
        return DEFAULT_CATEGORIES
    return _split_csv(raw)


def _split_csv(raw: str) -> tuple[str, ...]:
    deduped: list[str] = []
    seen: set[str] = set()
    for part in raw.split(","):
        normalized = part.strip()
        if not normalized or normalized in seen:
            continue
        seen.add(normalized)
        deduped.append(normalized)
    return tuple(deduped)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
