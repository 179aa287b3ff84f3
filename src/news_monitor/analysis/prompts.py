"""Prompt templates for article analysis."""

from __future__ import annotations

from collections.abc import Sequence

ANALYSIS_SYSTEM_PROMPT = """\
You are a professional news analyst monitoring the upstream oil and gas sector.

Analyze the provided news article and return a JSON object with exactly these fields:

1. "summary": A concise 2-3 sentence summary in the same language as the article.
   Focus on the key facts, who is involved, and the impact on the sector.

2. "sentiment": Exactly one of "positive", "negative", or "neutral".
   - "positive": new discoveries, increased production, successful projects, growth.
   - "negative": accidents, environmental issues, production decline, regulatory
     problems, corruption, protests.
   - "neutral": factual reporting, policy updates, routine announcements.

3. "categories": An array of 1-4 category labels from this list:
{categories}

Return ONLY valid JSON. No markdown formatting, no code fences, no explanations.

Example output:
{{"summary":"Production rose 5% in Q1 after enhanced oil recovery programs.",\
"sentiment":"positive","categories":["Production","Technology"]}}"""


def build_system_prompt(categories: Sequence[str]) -> str:
    listed = "\n".join(f'   - "{category}"' for category in categories) or '   - "General"'
    return ANALYSIS_SYSTEM_PROMPT.format(categories=listed)


def build_user_prompt(*, title: str, snippet: str | None, content: str | None) -> str:
    """Prefer full content; fall back to snippet, then title alone."""

    parts = [f"Title: {title}"]
    if content:
        parts.append(f"\nFull Article Content:\n{content}")
    elif snippet:
        parts.append(f"\nSnippet: {snippet}")
    return "\n".join(parts)
