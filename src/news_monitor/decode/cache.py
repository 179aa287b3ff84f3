"""Decode cache: source URL id -> resolved destination URL."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import Protocol
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

WRAPPED_HOST = "news.google.com"
_RESERVED_SEGMENTS = frozenset({"rss", "articles", "read"})
_MIN_ID_LENGTH = 11


class DecodeCacheStore(Protocol):
    """Persistent backing for cache entries."""

    def get_cached_urls(self, source_url_ids: Iterable[str]) -> dict[str, str]:
        raise NotImplementedError

    def put_cached_url(
        self,
        source_url_id: str,
        decoded_url: str,
        source_url: str | None = None,
    ) -> None:
        raise NotImplementedError


def is_wrapped_url(link: str) -> bool:
    """True for aggregator redirect links that need resolution."""

    try:
        host = urlparse(link.strip()).hostname
    except ValueError:
        return False
    return host == WRAPPED_HOST


def extract_source_url_id(link: str) -> str | None:
    """Return the opaque id of a wrapped link, or ``None`` when the shape does not match."""

    try:
        parsed = urlparse(link.strip())
    except ValueError:
        return None
    if parsed.hostname != WRAPPED_HOST:
        return None
    segments = [segment for segment in parsed.path.split("/") if segment]
    if not segments:
        return None
    candidate = segments[-1]
    if candidate in _RESERVED_SEGMENTS or len(candidate) < _MIN_ID_LENGTH:
        return None
    return candidate


class DecodeCache:
    """Thread-safe in-memory cache with optional write-through persistence.

    Entries never expire. ``store`` is idempotent and the last write wins.
    """

    def __init__(self, backing_store: DecodeCacheStore | None = None) -> None:
        self._entries: dict[str, str] = {}
        self._lock = threading.Lock()
        self._backing_store = backing_store

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def lookup(self, source_url_id: str) -> str | None:
        with self._lock:
            return self._entries.get(source_url_id)

    def lookup_batch(self, source_url_ids: Iterable[str]) -> dict[str, str]:
        """Pre-warm memory from the backing store and return all known hits."""

        requested = set(source_url_ids)
        with self._lock:
            hits = {key: self._entries[key] for key in requested if key in self._entries}
        missing = requested - hits.keys()
        if missing and self._backing_store is not None:
            loaded = self._backing_store.get_cached_urls(missing)
            if loaded:
                with self._lock:
                    self._entries.update(loaded)
                hits.update(loaded)
        logger.debug("Decode cache pre-warm: %d of %d ids known.", len(hits), len(requested))
        return hits

    def store(self, source_url_id: str, decoded_url: str, source_url: str | None = None) -> None:
        with self._lock:
            self._entries[source_url_id] = decoded_url
        if self._backing_store is not None:
            self._backing_store.put_cached_url(source_url_id, decoded_url, source_url)
