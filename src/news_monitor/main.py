"""CLI entrypoint for news-monitor."""

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TypeVar

import rich_click as click

from news_monitor import __version__
from news_monitor.controllers import (
    AnalyzeCommand,
    CommandError,
    IngestCommand,
    PipelineCliController,
    PipelineCommand,
    TopicAddCommand,
)

click.rich_click.USE_MARKDOWN = True
PIPELINE_CONTROLLER = PipelineCliController()

CommandT = TypeVar("CommandT")

_DB_PATH_OPTION = click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite DB path.",
)


@click.group()
@click.version_option(version=__version__, prog_name="news-monitor")
def news_monitor() -> None:
    """News monitor pipeline CLI.

    Every command prints JSON; streaming commands print one event per line.
    """


@news_monitor.command("decode")
@_DB_PATH_OPTION
def decode(db_path: Path | None) -> None:
    """Resolve wrapped aggregator links and stream progress events."""

    _emit_lines(PIPELINE_CONTROLLER.decode_stream, PipelineCommand(db_path=db_path))


@news_monitor.command("analyze")
@_DB_PATH_OPTION
@click.option(
    "--limit",
    type=int,
    default=None,
    help="Max articles to analyze; clamped to the configured maximum.",
)
@click.option(
    "--live/--batch",
    default=True,
    show_default=True,
    help="Stream progress events, or print one summary when done.",
)
def analyze(db_path: Path | None, limit: int | None, live: bool) -> None:
    """Enrich decoded articles with summary, sentiment and categories."""

    _emit_lines(
        PIPELINE_CONTROLLER.analyze,
        AnalyzeCommand(db_path=db_path, limit=limit, live=live),
    )


@news_monitor.command("reset-failed")
@_DB_PATH_OPTION
def reset_failed(db_path: Path | None) -> None:
    """Return failed analyses to the analyze queue."""

    _emit_lines(PIPELINE_CONTROLLER.reset_failed, PipelineCommand(db_path=db_path))


@news_monitor.command("pending")
@_DB_PATH_OPTION
def pending(db_path: Path | None) -> None:
    """Show decode and analyze backlog counts."""

    _emit_lines(PIPELINE_CONTROLLER.pending, PipelineCommand(db_path=db_path))


@news_monitor.command("ingest")
@_DB_PATH_OPTION
@click.option(
    "--feed-url",
    "feed_urls",
    multiple=True,
    help="RSS/Atom feed URL. Can be repeated; overrides NEWS_MONITOR_RSS_FEED_URLS.",
)
@click.option(
    "--search/--no-search",
    default=True,
    show_default=True,
    help=(
        "Also query the news search feed for every enabled topic keyword, and the "
        "search API when NEWS_MONITOR_SEARCH_API_KEY is set."
    ),
)
def ingest(db_path: Path | None, feed_urls: tuple[str, ...], search: bool) -> None:
    """Fetch sources and insert new articles."""

    _emit_lines(
        PIPELINE_CONTROLLER.ingest,
        IngestCommand(db_path=db_path, feed_urls=feed_urls, search=search),
    )


@news_monitor.group()
def topics() -> None:
    """Topic keyword sets used to tag ingested articles."""


@topics.command("add")
@_DB_PATH_OPTION
@click.argument("name")
@click.option("--keyword", "keywords", multiple=True, help="Match keyword. Can be repeated.")
@click.option("--disabled", is_flag=True, default=False, help="Store the topic as disabled.")
def topics_add(db_path: Path | None, name: str, keywords: tuple[str, ...], disabled: bool) -> None:
    """Create or replace a topic."""

    _emit_lines(
        PIPELINE_CONTROLLER.add_topic,
        TopicAddCommand(db_path=db_path, name=name, keywords=keywords, enabled=not disabled),
    )


@topics.command("list")
@_DB_PATH_OPTION
def topics_list(db_path: Path | None) -> None:
    """List configured topics."""

    _emit_lines(PIPELINE_CONTROLLER.list_topics, PipelineCommand(db_path=db_path))


def _emit_lines(handler: Callable[[CommandT], Iterable[str]], command: CommandT) -> None:
    try:
        for line in handler(command):
            click.echo(line)
    except CommandError as error:
        if error.line:
            click.echo(error.line)
        raise SystemExit(1) from error


if __name__ == "__main__":  # pragma: no cover
    news_monitor()
