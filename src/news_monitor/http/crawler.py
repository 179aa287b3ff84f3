"""Full-article crawler feeding the analyze stage."""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass
from urllib.parse import urlparse

from news_monitor.http.fetcher import HttpFetcher
from news_monitor.http.html_extractor import extract_text

logger = logging.getLogger(__name__)

MIN_CONTENT_CHARS = 50


@dataclass(slots=True)
class CrawlResult:
    content: str | None
    error: str | None = None


def validate_public_url(url: str) -> str | None:
    """Return an error for URLs that must not be crawled, or None when allowed."""

    try:
        parsed = urlparse(url)
    except ValueError as error:
        return f"unparseable URL: {error}"
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        return "only absolute http(s) URLs can be crawled"
    host = parsed.hostname
    if host == "localhost" or host.endswith(".localhost"):
        return "local hosts cannot be crawled"
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return None
    if address.is_private or address.is_loopback or address.is_link_local or address.is_reserved:
        return "private network addresses cannot be crawled"
    return None


class ContentCrawler:
    """Fetch an article page and reduce it to plain text."""

    def __init__(self, fetcher: HttpFetcher, *, max_chars: int = 12_000) -> None:
        self._fetcher = fetcher
        self._max_chars = max_chars

    def crawl(self, url: str) -> CrawlResult:
        rejection = validate_public_url(url)
        if rejection is not None:
            return CrawlResult(content=None, error=rejection)

        fetched = self._fetcher.fetch(url)
        if not fetched.is_success:
            return CrawlResult(content=None, error=fetched.error or "fetch failed")

        extracted = extract_text(fetched.content, url=url, max_chars=self._max_chars)
        if not extracted.is_success:
            return CrawlResult(content=None, error=extracted.error)
        if len(extracted.text.strip()) < MIN_CONTENT_CHARS:
            return CrawlResult(content=None, error="content too short")

        logger.debug("Crawled %s (%d chars).", url, len(extracted.text))
        return CrawlResult(content=extracted.text)
