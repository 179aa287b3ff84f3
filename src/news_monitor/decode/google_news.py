"""Resolve Google News redirect links to their publisher URLs."""

from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass

from lxml import etree
from lxml import html as lxml_html

from news_monitor.decode.cache import extract_source_url_id
from news_monitor.errors import FailureKind
from news_monitor.http.fetcher import HttpFetcher

logger = logging.getLogger(__name__)

BATCH_EXECUTE_URL = "https://news.google.com/_/DotsSplashUi/data/batchexecute?rpcids=Fbv4je"
SIGNED_BATCH_EXECUTE_URL = "https://news.google.com/_/DotsSplashUi/data/batchexecute"
_PREFIX = "\x08\x13\x22"
_SUFFIX = "\xd2\x01\x00"
_API_ONLY_MARKER = "AU_yqL"
_RESPONSE_HEADER = r"[\"garturlres\",\""
_RESPONSE_FOOTER = r"\","


@dataclass(slots=True)
class ResolveResult:
    """Tagged resolver outcome: ``url`` on success, ``error`` otherwise."""

    url: str | None = None
    error: str | None = None
    external_call: bool = False
    failure_kind: FailureKind | None = None

    @property
    def ok(self) -> bool:
        return self.url is not None


def decode_direct(encoded: str) -> str | None:
    """Decode the publisher URL embedded in the id, or None when an API call is needed."""

    try:
        raw = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4))
    except (binascii.Error, ValueError):
        return None

    decoded = raw.decode("latin-1")
    if decoded.startswith(_PREFIX):
        decoded = decoded[len(_PREFIX) :]
    if decoded.endswith(_SUFFIX):
        decoded = decoded[: -len(_SUFFIX)]
    if not decoded:
        return None

    length = ord(decoded[0])
    # Lengths >= 0x80 use a two-byte varint.
    decoded = decoded[2 : length + 1] if length >= 0x80 else decoded[1 : length + 1]

    if decoded.startswith(_API_ONLY_MARKER):
        return None
    if decoded.startswith(("http://", "https://")):
        return decoded
    return None


def build_batch_execute_payload(encoded: str) -> str:
    return (
        '[[["Fbv4je","[\\"garturlreq\\",[[\\"en-US\\",\\"US\\",[\\"FINANCE_TOP_INDICES\\",'
        '\\"WEB_TEST_1_0_0\\"],null,null,1,1,\\"US:en\\",null,180,null,null,null,null,null,0,'
        'null,null,[1608992183,723341000]],\\"en-US\\",\\"US\\",1,[2,3,4,8],1,0,\\"655000234\\",'
        f'0,0,null,0],\\"{encoded}\\"]",null,"generic"]]]'
    )


def parse_batch_execute_response(body: str) -> str | None:
    _, header, rest = body.partition(_RESPONSE_HEADER)
    if not header:
        return None
    url, footer, _ = rest.partition(_RESPONSE_FOOTER)
    if not footer:
        return None
    return url


def extract_decoding_params(page_html: str) -> tuple[str, str] | None:
    """Return ``(signature, timestamp)`` from an article page, or None."""

    if not page_html.strip():
        return None
    try:
        tree = lxml_html.fromstring(page_html)
    except (etree.ParserError, ValueError):
        return None
    for element in tree.xpath("//c-wiz/div[@jscontroller]"):
        signature = element.get("data-n-a-sg")
        timestamp = element.get("data-n-a-ts")
        if signature and timestamp:
            return signature, timestamp
    return None


def build_signed_payload(encoded: str, signature: str, timestamp: str) -> str:
    request = (
        '["garturlreq",[["X","X",["X","X"],null,null,1,1,"US:en",null,1,null,null,null,'
        'null,null,0,1],"X","X",1,[1,1,1],1,1,null,0,0,null,0],'
        f'"{encoded}",{timestamp},"{signature}"]'
    )
    return json.dumps([[["Fbv4je", request]]], separators=(",", ":"))


def parse_signed_response(body: str) -> str | None:
    """Pull the URL out of a signed ``batchexecute`` reply."""

    chunks = body.split("\n\n")
    if len(chunks) < 2:
        return None
    try:
        envelope = json.loads(chunks[1])[:-2]
        url = json.loads(envelope[0][2])[1]
    except (json.JSONDecodeError, IndexError, KeyError, TypeError):
        return None
    return url if isinstance(url, str) and url else None


class GoogleNewsResolver:
    """Offline base64 decode first, then ``batchexecute``, then the signed request."""

    def __init__(self, fetcher: HttpFetcher) -> None:
        self._fetcher = fetcher

    def resolve(self, link: str) -> ResolveResult:
        source_url_id = extract_source_url_id(link)
        if source_url_id is None:
            return ResolveResult(
                error="Invalid Google News URL format.",
                failure_kind=FailureKind.PERMANENT,
            )

        direct = decode_direct(source_url_id)
        if direct is not None:
            return ResolveResult(url=direct)

        batch_result = self._resolve_batch_execute(source_url_id)
        if batch_result.ok:
            return batch_result

        logger.info(
            "batchexecute failed for %s (%s); trying signed request.",
            source_url_id,
            batch_result.error,
        )
        signed_url = self._resolve_signed(source_url_id)
        if signed_url is not None:
            return ResolveResult(url=signed_url, external_call=True)
        return batch_result

    def _resolve_batch_execute(self, source_url_id: str) -> ResolveResult:
        response = self._fetcher.post_form(
            BATCH_EXECUTE_URL,
            data={"f.req": build_batch_execute_payload(source_url_id)},
            headers={"Referer": "https://news.google.com/"},
        )
        if not response.is_success:
            return ResolveResult(
                error=f"Resolver request failed: {response.error}",
                external_call=True,
                failure_kind=FailureKind.TRANSIENT,
            )

        resolved = parse_batch_execute_response(response.content)
        if resolved is None:
            return ResolveResult(
                error="Malformed resolver response.",
                external_call=True,
                failure_kind=FailureKind.PERMANENT,
            )
        return ResolveResult(url=resolved, external_call=True)

    def _resolve_signed(self, source_url_id: str) -> str | None:
        params = self._fetch_decoding_params(source_url_id)
        if params is None:
            return None
        signature, timestamp = params
        response = self._fetcher.post_form(
            SIGNED_BATCH_EXECUTE_URL,
            data={"f.req": build_signed_payload(source_url_id, signature, timestamp)},
        )
        if not response.is_success:
            logger.warning("Signed resolver request failed: %s", response.error)
            return None
        return parse_signed_response(response.content)

    def _fetch_decoding_params(self, source_url_id: str) -> tuple[str, str] | None:
        for page_url in (
            f"https://news.google.com/rss/articles/{source_url_id}",
            f"https://news.google.com/articles/{source_url_id}",
        ):
            response = self._fetcher.fetch(page_url)
            if not response.is_success:
                continue
            params = extract_decoding_params(response.content)
            if params is not None:
                return params
        logger.warning("No decoding parameters found for %s.", source_url_id)
        return None
