"""Synchronous HTTP client with timeout and transport-level retries."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass(slots=True)
class FetchResult:
    """Result of an HTTP request; transport failures are folded into ``error``."""

    url: str
    status_code: int
    content: str
    content_type: str
    is_success: bool
    error: str | None = None
    is_timeout: bool = False
    retry_after: int | None = None


class HttpFetcher:
    """httpx client wrapper; every request is bounded by ``timeout_seconds``."""

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        user_agent: str = DEFAULT_USER_AGENT,
        headers: Mapping[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        base_headers = {"User-Agent": user_agent}
        if headers:
            base_headers.update(headers)
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds, connect=min(10.0, timeout_seconds)),
            headers=base_headers,
            transport=transport or httpx.HTTPTransport(retries=max_retries),
            follow_redirects=True,
        )

    def fetch(
        self,
        url: str,
        *,
        params: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> FetchResult:
        """GET ``url`` and return a structured result."""

        return self._send("GET", url, params=params, headers=headers)

    def post_form(
        self,
        url: str,
        *,
        data: Mapping[str, str],
        headers: Mapping[str, str] | None = None,
    ) -> FetchResult:
        """POST url-encoded ``data`` and return a structured result."""

        return self._send("POST", url, data=data, headers=headers)

    def post_json(
        self,
        url: str,
        *,
        payload: object,
        headers: Mapping[str, str] | None = None,
    ) -> FetchResult:
        return self._send("POST", url, json=payload, headers=headers)

    def _send(self, method: str, url: str, **kwargs: object) -> FetchResult:
        try:
            response = self._client.request(method, url, **kwargs)  # type: ignore[arg-type]
        except httpx.TimeoutException:
            logger.warning("Timeout on %s %s", method, url)
            return FetchResult(
                url=url,
                status_code=0,
                content="",
                content_type="",
                is_success=False,
                error="timeout",
                is_timeout=True,
            )
        except httpx.HTTPError as exc:
            logger.warning("HTTP error on %s %s: %s", method, url, exc)
            return FetchResult(
                url=url,
                status_code=0,
                content="",
                content_type="",
                is_success=False,
                error=str(exc) or exc.__class__.__name__,
            )

        return FetchResult(
            url=str(response.url),
            status_code=response.status_code,
            content=response.text,
            content_type=response.headers.get("content-type", ""),
            is_success=response.is_success,
            error=None if response.is_success else f"HTTP {response.status_code}",
            retry_after=_parse_retry_after(response.headers.get("retry-after")),
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpFetcher:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


def _parse_retry_after(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None
