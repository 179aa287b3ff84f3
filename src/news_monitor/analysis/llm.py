"""OpenAI-compatible chat-completions client for article analysis."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Protocol

from news_monitor.config import AnalysisSettings
from news_monitor.errors import FailureKind
from news_monitor.http.fetcher import HttpFetcher

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class InferenceResult:
    """Raw model reply, or the reason the call produced none."""

    content: str | None = None
    error: str | None = None
    failure_kind: FailureKind | None = None
    external_call: bool = True


class InferenceClient(Protocol):
    """External AI inference collaborator."""

    def complete(self, *, system_prompt: str, user_prompt: str) -> InferenceResult:
        raise NotImplementedError


class ChatCompletionsClient:
    """Calls ``{api_base}/chat/completions`` with a JSON response format."""

    def __init__(self, settings: AnalysisSettings, fetcher: HttpFetcher) -> None:
        self._settings = settings
        self._fetcher = fetcher

    def complete(self, *, system_prompt: str, user_prompt: str) -> InferenceResult:
        if not self._settings.api_key:
            return InferenceResult(
                error="Inference API key is not configured.",
                failure_kind=FailureKind.PERMANENT,
                external_call=False,
            )

        response = self._fetcher.post_json(
            f"{self._settings.api_base.rstrip('/')}/chat/completions",
            payload={
                "model": self._settings.model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                "temperature": self._settings.temperature,
                "max_tokens": self._settings.max_tokens,
                "response_format": {"type": "json_object"},
            },
            headers={"Authorization": f"Bearer {self._settings.api_key}"},
        )
        if not response.is_success:
            return InferenceResult(
                error=f"Inference request failed: {response.error}",
                failure_kind=FailureKind.TRANSIENT,
            )

        content = extract_message_content(response.content)
        if not content:
            logger.warning("Empty completion from %s.", self._settings.model)
            return InferenceResult(
                error="Empty response from inference service.",
                failure_kind=FailureKind.PERMANENT,
            )
        return InferenceResult(content=content)


def extract_message_content(body: str) -> str | None:
    """Return ``choices[0].message.content`` from a completions body."""

    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) and content.strip() else None
