from __future__ import annotations

import allure
import pytest

from news_monitor.config import (
    DEFAULT_CATEGORIES,
    AnalysisSettings,
    DecodeSettings,
    Settings,
    SourceSettings,
)

pytestmark = [
    allure.epic("Pipeline Operations"),
    allure.feature("Configuration"),
]


def test_from_env_defaults_use_conservative_pacing(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "NEWS_MONITOR_DECODE_MIN_INTERVAL_SECONDS",
        "NEWS_MONITOR_ANALYZE_DEFAULT_LIMIT",
        "NEWS_MONITOR_ANALYZE_MAX_LIMIT",
        "NEWS_MONITOR_ALLOWED_CATEGORIES",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.decode.min_interval_seconds == 3.0
    assert settings.analysis.min_interval_seconds == 0.5
    assert settings.analysis.default_limit == 10
    assert settings.analysis.max_limit == 50
    assert settings.analysis.allowed_categories == DEFAULT_CATEGORIES
    settings.validate()


def test_from_env_reads_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NEWS_MONITOR_DECODE_MIN_INTERVAL_SECONDS", "0")
    monkeypatch.setenv("NEWS_MONITOR_ANALYZE_MAX_LIMIT", "20")
    monkeypatch.setenv("NEWS_MONITOR_ANALYZE_DEFAULT_LIMIT", "5")
    monkeypatch.setenv("NEWS_MONITOR_CRAWL_ENABLED", "off")
    monkeypatch.setenv("NEWS_MONITOR_ALLOWED_CATEGORIES", "Market, Safety,,Market")
    monkeypatch.setenv("NEWS_MONITOR_RSS_FEED_URLS", "https://a.example/feed, https://b.example/rss")
    monkeypatch.setenv("NEWS_MONITOR_USER_ID", "analyst")
    monkeypatch.setenv("NEWS_MONITOR_SEARCH_API_KEY", "secret")
    monkeypatch.setenv("NEWS_MONITOR_SEARCH_API_MAX_ATTEMPTS", "5")

    settings = Settings.from_env()

    assert settings.decode.min_interval_seconds == 0.0
    assert settings.analysis.max_limit == 20
    assert settings.analysis.default_limit == 5
    assert settings.crawl.enabled is False
    assert settings.analysis.allowed_categories == ("Market", "Safety")
    assert settings.sources.rss_feed_urls == ("https://a.example/feed", "https://b.example/rss")
    assert settings.user_context.user_id == "analyst"
    assert settings.sources.search_api_key == "secret"
    assert settings.sources.search_api_max_attempts == 5
    assert settings.sources.search_api_limit == 50


def test_from_env_rejects_invalid_boolean(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NEWS_MONITOR_CRAWL_ENABLED", "maybe")

    with pytest.raises(ValueError, match="Invalid boolean value"):
        Settings.from_env()


@pytest.mark.parametrize(
    ("limit", "expected"),
    [(None, 10), (0, 1), (-3, 1), (7, 7), (50, 50), (500, 50)],
)
def test_clamp_analyze_limit(limit: int | None, expected: int) -> None:
    assert Settings().clamp_analyze_limit(limit) == expected


def test_validate_rejects_default_above_max() -> None:
    settings = Settings(analysis=AnalysisSettings(default_limit=60, max_limit=50))

    with pytest.raises(ValueError, match="DEFAULT_LIMIT"):
        settings.validate()


def test_validate_rejects_non_positive_max_limit() -> None:
    settings = Settings(analysis=AnalysisSettings(max_limit=0))

    with pytest.raises(ValueError, match="MAX_LIMIT"):
        settings.validate()


def test_validate_rejects_negative_interval() -> None:
    settings = Settings(decode=DecodeSettings(min_interval_seconds=-1))

    with pytest.raises(ValueError, match="DECODE_MIN_INTERVAL"):
        settings.validate()


def test_validate_rejects_invalid_feed_url() -> None:
    settings = Settings(sources=SourceSettings(rss_feed_urls=("ftp://example.com/feed.xml",)))

    with pytest.raises(ValueError, match="Invalid RSS feed URL"):
        settings.validate()
