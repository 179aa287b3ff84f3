"""Strict validation of the inference response."""

from __future__ import annotations

import json
import re
from collections.abc import Sequence
from dataclasses import dataclass

from news_monitor.models import Sentiment

FALLBACK_CATEGORY = "General"
_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)


@dataclass(slots=True, frozen=True)
class ParsedAnalysis:
    summary: str
    sentiment: Sentiment
    categories: list[str]


@dataclass(slots=True, frozen=True)
class AnalysisRejection:
    reason: str


AnalysisParseResult = ParsedAnalysis | AnalysisRejection


def parse_analysis_response(
    raw: str,
    *,
    allowed_categories: Sequence[str] = (),
) -> AnalysisParseResult:
    """Validate a raw model reply into a tagged result; never raises on bad input."""

    cleaned = _CODE_FENCE_RE.sub("", raw or "").strip()
    if not cleaned:
        return AnalysisRejection("Empty response from model.")
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as error:
        return AnalysisRejection(f"Response is not valid JSON: {error.msg}.")
    if not isinstance(payload, dict):
        return AnalysisRejection("Response JSON must be an object.")

    summary = payload.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        return AnalysisRejection("Missing or empty summary.")

    raw_sentiment = payload.get("sentiment")
    if not isinstance(raw_sentiment, str):
        return AnalysisRejection(f"Invalid sentiment: {raw_sentiment!r}.")
    try:
        sentiment = Sentiment(raw_sentiment.strip().lower())
    except ValueError:
        return AnalysisRejection(f"Invalid sentiment: {raw_sentiment!r}.")

    raw_categories = payload.get("categories", [])
    if not isinstance(raw_categories, list):
        return AnalysisRejection("Categories must be a list.")
    return ParsedAnalysis(
        summary=summary.strip(),
        sentiment=sentiment,
        categories=normalize_categories(raw_categories, allowed_categories),
    )


def normalize_categories(values: Sequence[object], allowed: Sequence[str] = ()) -> list[str]:
    """Strip and dedupe in first-seen order; fall back to General when nothing survives."""

    allowed_set = set(allowed)
    result: list[str] = []
    seen: set[str] = set()
    for value in values:
        if not isinstance(value, str):
            continue
        category = value.strip()
        if not category or category in seen:
            continue
        if allowed_set and category not in allowed_set:
            continue
        seen.add(category)
        result.append(category)
    if not result:
        return [FALLBACK_CATEGORY]
    return result
