from __future__ import annotations

import json
import sqlite3
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from news_monitor.controllers import CommandError, PipelineCliController, PipelineCommand
from news_monitor.ingestion.sources.rss import RssFeedFetcher
from news_monitor.main import news_monitor
from news_monitor.models import CandidateArticle, SourceKind, Stage
from news_monitor.pipeline.registry import RunRegistry
from news_monitor.repository import ArticleRepository

pytestmark = [
    allure.epic("Pipeline Operations"),
    allure.feature("CLI"),
]

USER_ID = "cli-user"


@pytest.fixture()
def db_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    path = tmp_path / "cli.db"
    monkeypatch.setenv("NEWS_MONITOR_DB_PATH", str(path))
    monkeypatch.setenv("NEWS_MONITOR_USER_ID", USER_ID)
    monkeypatch.setenv("NEWS_MONITOR_CRAWL_ENABLED", "0")
    monkeypatch.setenv("NEWS_MONITOR_LLM_API_KEY", "")
    monkeypatch.delenv("NEWS_MONITOR_RSS_FEED_URLS", raising=False)
    return path


def _seed(db_path: Path, links: list[str]) -> None:
    repository = ArticleRepository(db_path, user_id=USER_ID, user_name="CLI User")
    repository.init_schema()
    try:
        repository.insert_candidates(
            [CandidateArticle(title=link, link=link, source_kind=SourceKind.RSS) for link in links],
        )
    finally:
        repository.close()


def _lines(output: str) -> list[dict]:
    return [json.loads(line) for line in output.splitlines() if line.strip()]


def test_pending_on_empty_store(db_path: Path) -> None:
    result = CliRunner().invoke(news_monitor, ["pending"])

    assert result.exit_code == 0
    assert _lines(result.stdout) == [{"decodePendingCount": 0, "pendingCount": 0}]


def test_decode_streams_ndjson_progress(db_path: Path) -> None:
    _seed(db_path, ["https://pub.example/1", "https://pub.example/2"])

    result = CliRunner().invoke(news_monitor, ["decode"])

    assert result.exit_code == 0
    events = _lines(result.stdout)
    assert [event["type"] for event in events] == ["progress", "progress", "complete"]
    assert events[-1] == {"type": "complete", "succeeded": 2, "failed": 0, "total": 2}

    pending = CliRunner().invoke(news_monitor, ["pending"])
    assert _lines(pending.stdout) == [{"decodePendingCount": 0, "pendingCount": 2}]


def test_analyze_batch_without_api_key_persists_failures(db_path: Path) -> None:
    _seed(db_path, ["https://pub.example/1", "https://pub.example/2"])
    runner = CliRunner()
    runner.invoke(news_monitor, ["decode"])

    result = runner.invoke(news_monitor, ["analyze", "--batch", "--limit", "5"])

    assert result.exit_code == 0
    (summary,) = _lines(result.stdout)
    assert (summary["analyzed"], summary["failed"], summary["remaining"]) == (0, 2, 0)
    assert all("API key is not configured" in error for error in summary["errors"])

    reset = runner.invoke(news_monitor, ["reset-failed"])
    assert _lines(reset.stdout) == [{"resetCount": 2}]
    pending = runner.invoke(news_monitor, ["pending"])
    assert _lines(pending.stdout) == [{"decodePendingCount": 0, "pendingCount": 2}]


def test_analyze_live_streams_events(db_path: Path) -> None:
    _seed(db_path, ["https://pub.example/1"])
    runner = CliRunner()
    runner.invoke(news_monitor, ["decode"])

    result = runner.invoke(news_monitor, ["analyze"])

    assert result.exit_code == 0
    assert _lines(result.stdout)[-1] == {"type": "complete", "succeeded": 0, "failed": 1, "total": 1}


def test_missing_identity_is_unauthorized(db_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NEWS_MONITOR_USER_ID", "")

    result = CliRunner().invoke(news_monitor, ["decode"])

    assert result.exit_code == 1
    assert _lines(result.stdout) == [{"error": "Unauthorized"}]


def test_invalid_configuration_is_a_validation_error(
    db_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("NEWS_MONITOR_ANALYZE_MAX_LIMIT", "0")

    result = CliRunner().invoke(news_monitor, ["pending"])

    assert result.exit_code == 1
    (line,) = _lines(result.stdout)
    assert line["error"] == "ValidationError"
    assert "MAX_LIMIT" in line["message"]


def test_active_run_is_reported_as_already_running(db_path: Path) -> None:
    registry = RunRegistry()
    registry.acquire(USER_ID, Stage.DECODE)
    controller = PipelineCliController(registry=registry)

    with pytest.raises(CommandError) as error:
        list(controller.decode_stream(PipelineCommand(db_path=db_path)))

    assert json.loads(error.value.line)["error"] == "AlreadyRunning"


def test_ingest_reports_counts(db_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_fetch(self: RssFeedFetcher) -> list[CandidateArticle]:
        return [
            CandidateArticle(
                title="Offshore output rises",
                link=f"{self.feed_url}/story",
                source_kind=SourceKind.RSS,
            ),
        ]

    monkeypatch.setattr(RssFeedFetcher, "fetch", fake_fetch)
    runner = CliRunner()
    runner.invoke(news_monitor, ["topics", "add", "Offshore", "--keyword", "offshore"])

    args = ["ingest", "--no-search", "--feed-url", "https://pub.example/feed"]
    first = runner.invoke(news_monitor, args)
    second = runner.invoke(news_monitor, args)

    assert _lines(first.stdout) == [{"inserted": 1, "skipped": 0, "errors": []}]
    assert _lines(second.stdout) == [{"inserted": 0, "skipped": 1, "errors": []}]


def test_topics_add_and_list(db_path: Path) -> None:
    runner = CliRunner()

    added = runner.invoke(
        news_monitor,
        ["topics", "add", "Upstream", "--keyword", "rig", "--keyword", "rig", "--keyword", "well"],
    )
    runner.invoke(news_monitor, ["topics", "add", "Coal", "--disabled"])
    listed = runner.invoke(news_monitor, ["topics", "list"])

    assert _lines(added.stdout) == [{"name": "Upstream", "keywords": ["rig", "well"], "enabled": True}]
    assert _lines(listed.stdout) == [
        {"name": "Coal", "keywords": [], "enabled": False},
        {"name": "Upstream", "keywords": ["rig", "well"], "enabled": True},
    ]


def test_blank_topic_name_is_rejected(db_path: Path) -> None:
    result = CliRunner().invoke(news_monitor, ["topics", "add", "   "])

    assert result.exit_code == 1
    assert _lines(result.stdout)[0]["error"] == "ValidationError"


def test_unexpected_storage_error_hides_details(db_path: Path) -> None:
    _seed(db_path, ["https://pub.example/1"])
    connection = sqlite3.connect(db_path)
    try:
        connection.execute("UPDATE articles SET matched_topics_json = '{broken'")
        connection.commit()
    finally:
        connection.close()

    result = CliRunner().invoke(news_monitor, ["decode"])

    assert result.exit_code == 1
    assert _lines(result.stdout) == [{"error": "Internal error"}]


def test_unparseable_configuration_is_a_validation_error(
    db_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("NEWS_MONITOR_ANALYZE_DEFAULT_LIMIT", "ten")

    result = CliRunner().invoke(news_monitor, ["pending"])

    assert result.exit_code == 1
    assert _lines(result.stdout)[0]["error"] == "ValidationError"
