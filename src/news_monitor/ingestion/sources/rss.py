"""RSS/Atom feed fetcher and parser."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

from defusedxml import ElementTree

from news_monitor.http.fetcher import HttpFetcher
from news_monitor.ingestion.cleaning import html_to_text
from news_monitor.ingestion.sources.base import SourceError, error_for_status
from news_monitor.models import CandidateArticle, SourceKind

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FeedEntry:
    """One parsed feed item before it is mapped to a candidate."""

    title: str
    link: str
    summary: str | None = None
    source_name: str | None = None
    source_url: str | None = None
    photo_url: str | None = None
    published_at: datetime | None = None


class RssFeedFetcher:
    """Fetch one RSS or Atom feed over HTTP."""

    def __init__(self, feed_url: str, fetcher: HttpFetcher) -> None:
        self.feed_url = feed_url
        self.name = f"rss:{feed_url}"
        self._fetcher = fetcher

    def fetch(self) -> list[CandidateArticle]:
        entries = fetch_feed_entries(self._fetcher, self.feed_url)
        logger.info("Fetched %d entries from %s", len(entries), self.feed_url)
        return [
            CandidateArticle(
                title=entry.title,
                link=entry.link,
                source_kind=SourceKind.RSS,
                snippet=html_to_text(entry.summary) or None,
                photo_url=entry.photo_url,
                source_name=entry.source_name,
                source_url=entry.source_url,
                published_at=entry.published_at,
            )
            for entry in entries
        ]


def fetch_feed_entries(
    fetcher: HttpFetcher,
    feed_url: str,
    *,
    params: dict[str, str] | None = None,
) -> list[FeedEntry]:
    response = fetcher.fetch(feed_url, params=params)
    if not response.is_success:
        raise error_for_status(response.status_code, response.error, source=feed_url)
    return parse_feed(response.content, feed_url)


def parse_feed(raw_xml: str, feed_url: str) -> list[FeedEntry]:
    try:
        root = ElementTree.fromstring(raw_xml)
    except ElementTree.ParseError as error:
        raise SourceError(
            message=f"Invalid RSS/Atom XML from {feed_url}",
            code="invalid_feed_xml",
        ) from error

    root_name = _local_name(root.tag)
    if root_name == "rss":
        return _parse_rss(root, feed_url)
    if root_name == "feed":
        return _parse_atom(root, feed_url)
    raise SourceError(
        message=f"Unsupported feed format from {feed_url}",
        code="unsupported_feed_format",
    )


def _parse_rss(root: ElementTree.Element, feed_url: str) -> list[FeedEntry]:
    channel = root.find("channel")
    container = channel if channel is not None else root
    feed_title = _child_text(container, "title")

    entries: list[FeedEntry] = []
    for item in container:
        if _local_name(item.tag) != "item":
            continue
        title = _child_text(item, "title")
        link = _child_text(item, "link")
        if not title or not link:
            continue
        source = _child(item, "source")
        entries.append(
            FeedEntry(
                title=title,
                link=link,
                summary=_child_text(item, "description") or _child_text(item, "encoded"),
                source_name=_text_of(source) or _child_text(item, "creator") or feed_title,
                source_url=source.attrib.get("url") if source is not None else None,
                photo_url=_media_url(item),
                published_at=_parse_datetime(_child_text(item, "pubDate")),
            ),
        )
    return entries


def _parse_atom(root: ElementTree.Element, feed_url: str) -> list[FeedEntry]:
    feed_title = _child_text(root, "title")

    entries: list[FeedEntry] = []
    for entry in root:
        if _local_name(entry.tag) != "entry":
            continue
        title = _child_text(entry, "title")
        link = _atom_link(entry)
        if not title or not link:
            continue
        author = _child(entry, "author")
        entries.append(
            FeedEntry(
                title=title,
                link=link,
                summary=_child_text(entry, "summary") or _child_text(entry, "content"),
                source_name=(_child_text(author, "name") if author is not None else None)
                or feed_title,
                photo_url=_media_url(entry),
                published_at=_parse_datetime(
                    _child_text(entry, "published") or _child_text(entry, "updated"),
                ),
            ),
        )
    return entries


def _atom_link(entry: ElementTree.Element) -> str | None:
    fallback: str | None = None
    for child in entry:
        if _local_name(child.tag) != "link":
            continue
        href = child.attrib.get("href", "").strip()
        if not href:
            continue
        rel = child.attrib.get("rel", "").strip().lower()
        if not rel or rel == "alternate":
            return href
        fallback = fallback or href
    return fallback


def _media_url(item: ElementTree.Element) -> str | None:
    for child in item:
        name = _local_name(child.tag)
        if name in {"content", "thumbnail"} and child.attrib.get("url"):
            return child.attrib["url"].strip()
        if name == "enclosure" and child.attrib.get("type", "").startswith("image/"):
            return child.attrib.get("url", "").strip() or None
    return None


def _child(element: ElementTree.Element, name: str) -> ElementTree.Element | None:
    target = name.lower()
    for child in element:
        if _local_name(child.tag) == target:
            return child
    return None


def _child_text(element: ElementTree.Element, name: str) -> str | None:
    return _text_of(_child(element, name))


def _text_of(element: ElementTree.Element | None) -> str | None:
    if element is None:
        return None
    text = "".join(element.itertext()).strip()
    return text or None


def _local_name(tag: str) -> str:
    if "}" in tag:
        return tag.rsplit("}", 1)[1].lower()
    return tag.lower()


def _parse_datetime(raw_value: str | None) -> datetime | None:
    if not raw_value:
        return None
    try:
        parsed = parsedate_to_datetime(raw_value)
    except (TypeError, ValueError):
        try:
            parsed = datetime.fromisoformat(raw_value)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)
