from __future__ import annotations

from datetime import UTC, datetime
from urllib.parse import parse_qs, urlparse

import allure
import httpx
import pytest

from news_monitor.config import SourceSettings
from news_monitor.http.fetcher import HttpFetcher
from news_monitor.ingestion.sources.base import SourceError, SourceFetcher, TemporarySourceError
from news_monitor.ingestion.sources.google_news import (
    GoogleNewsSearchFetcher,
    build_search_fetchers,
)
from news_monitor.ingestion.sources.rss import RssFeedFetcher, parse_feed
from news_monitor.models import SourceKind, TopicView

pytestmark = [
    allure.epic("Ingestion"),
    allure.feature("Feed Intake & Cleaning"),
]

RSS_XML = """<?xml version="1.0"?>
<rss version="2.0" xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>Energy Wire</title>
    <item>
      <title>Block output rises</title>
      <link>https://pub.example/output</link>
      <description>&lt;p&gt;Output &lt;b&gt;rose&lt;/b&gt;.&lt;/p&gt;</description>
      <pubDate>Mon, 19 Oct 2026 08:30:00 +0700</pubDate>
      <media:content url="https://pub.example/img.jpg" />
    </item>
    <item>
      <title>No link item</title>
    </item>
  </channel>
</rss>
"""

ATOM_XML = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Regulator Notes</title>
  <entry>
    <title>New licensing round</title>
    <link rel="self" href="https://reg.example/self" />
    <link rel="alternate" href="https://reg.example/round" />
    <summary>Round opens in May.</summary>
    <updated>2026-10-18T12:00:00Z</updated>
  </entry>
</feed>
"""

SEARCH_XML = """<?xml version="1.0"?>
<rss version="2.0">
  <channel>
    <title>Search results</title>
    <item>
      <title>Rig count climbs - Antara News</title>
      <link>https://news.google.com/rss/articles/CBMiAbcdefghijkl?oc=5</link>
      <description>&lt;a href="x"&gt;Rig count climbs&lt;/a&gt;</description>
      <source url="https://antaranews.example">Antara News</source>
    </item>
  </channel>
</rss>
"""


def _fetcher(handler) -> HttpFetcher:
    return HttpFetcher(timeout_seconds=5.0, transport=httpx.MockTransport(handler))


def test_parse_rss_items() -> None:
    entries = parse_feed(RSS_XML, "https://pub.example/feed")

    assert len(entries) == 1
    entry = entries[0]
    assert entry.title == "Block output rises"
    assert entry.link == "https://pub.example/output"
    assert entry.source_name == "Energy Wire"
    assert entry.photo_url == "https://pub.example/img.jpg"
    assert entry.published_at == datetime(2026, 10, 19, 1, 30, tzinfo=UTC)


def test_parse_atom_prefers_alternate_link() -> None:
    entries = parse_feed(ATOM_XML, "https://reg.example/atom")

    assert [entry.link for entry in entries] == ["https://reg.example/round"]
    assert entries[0].source_name == "Regulator Notes"
    assert entries[0].summary == "Round opens in May."
    assert entries[0].published_at == datetime(2026, 10, 18, 12, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    ("raw", "code"),
    [
        ("<rss><channel>", "invalid_feed_xml"),
        ("<html><body/></html>", "unsupported_feed_format"),
    ],
)
def test_parse_feed_rejects_bad_documents(raw: str, code: str) -> None:
    with pytest.raises(SourceError) as error:
        parse_feed(raw, "https://pub.example/feed")

    assert error.value.code == code


def test_rss_fetcher_maps_entries_to_candidates() -> None:
    with _fetcher(lambda request: httpx.Response(200, text=RSS_XML)) as http:
        fetcher = RssFeedFetcher("https://pub.example/feed", http)
        candidates = fetcher.fetch()

    assert isinstance(fetcher, SourceFetcher)
    assert fetcher.name == "rss:https://pub.example/feed"
    assert candidates[0].source_kind is SourceKind.RSS
    assert candidates[0].snippet == "Output rose ."


def test_rss_fetcher_raises_temporary_error_on_throttling() -> None:
    with _fetcher(lambda request: httpx.Response(503)) as http:
        with pytest.raises(TemporarySourceError):
            RssFeedFetcher("https://pub.example/feed", http).fetch()


def test_search_fetcher_splits_titles_and_keeps_wrapped_links() -> None:
    seen: dict[str, list[str]] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(parse_qs(urlparse(str(request.url)).query))
        return httpx.Response(200, text=SEARCH_XML)

    with _fetcher(handler) as http:
        candidates = GoogleNewsSearchFetcher(
            "rig count",
            http,
            language="id",
            region="ID",
            topic_name="Drilling",
        ).fetch()

    assert seen == {"q": ["rig count"], "hl": ["id"], "gl": ["ID"], "ceid": ["ID:id"]}
    candidate = candidates[0]
    assert candidate.title == "Rig count climbs"
    assert candidate.source_name == "Antara News"
    assert candidate.source_url == "https://antaranews.example"
    assert candidate.link.startswith("https://news.google.com/rss/articles/")
    assert candidate.source_kind is SourceKind.AGGREGATOR_SEARCH
    assert candidate.matched_topics == ["Drilling"]


def test_build_search_fetchers_caps_keywords_per_topic() -> None:
    topics = [
        TopicView(name="Upstream", keywords=["a", "b", "c"]),
        TopicView(name="LNG", keywords=[]),
    ]
    with _fetcher(lambda request: httpx.Response(200)) as http:
        fetchers = build_search_fetchers(topics, http, SourceSettings(max_keywords_per_topic=2))

    assert [fetcher.name for fetcher in fetchers] == [
        "google-news:a",
        "google-news:b",
        "google-news:LNG",
    ]
