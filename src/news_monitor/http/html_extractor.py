"""Article body extraction from HTML using trafilatura."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import trafilatura

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExtractionResult:
    text: str
    is_success: bool
    error: str | None = None


def extract_text(html: str, *, url: str | None = None, max_chars: int = 0) -> ExtractionResult:
    """Extract the main article text, trying a precise pass before a recall pass."""

    if not html or not html.strip():
        return ExtractionResult(text="", is_success=False, error="empty HTML input")

    text: str | None = None
    last_error: str | None = None
    for mode in ({"favor_precision": True, "deduplicate": True}, {"favor_recall": True}):
        try:
            text = trafilatura.extract(html, url=url, include_tables=False, **mode)
        except Exception as exc:  # noqa: BLE001
            logger.warning("trafilatura.extract failed for %s: %s", url or "<unknown>", exc)
            last_error = f"extraction failed: {exc}"
            continue
        if text:
            break

    if not text:
        return ExtractionResult(
            text="",
            is_success=False,
            error=last_error or "no content extracted",
        )
    if max_chars > 0 and len(text) > max_chars:
        text = text[:max_chars].rstrip()
    return ExtractionResult(text=text, is_success=True)
