"""Text normalization for feed fields and topic matching."""

from __future__ import annotations

import html
import re

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")


def html_to_text(raw_html: str | None) -> str:
    """Convert HTML markup into normalized plain text."""

    if not raw_html:
        return ""
    no_scripts = _SCRIPT_STYLE_RE.sub(" ", raw_html)
    stripped = _TAG_RE.sub(" ", no_scripts)
    unescaped = html.unescape(stripped)
    return _WHITESPACE_RE.sub(" ", unescaped).strip()


def split_aggregator_title(full_title: str) -> tuple[str, str | None]:
    """Split ``"Title - Source"`` on the last separator."""

    title, separator, source_name = full_title.rpartition(" - ")
    if not separator or not title.strip():
        return full_title.strip(), None
    return title.strip(), source_name.strip() or None


def matches_keyword(text: str, keyword: str) -> bool:
    normalized = keyword.strip().casefold()
    return bool(normalized) and normalized in text.casefold()
