from __future__ import annotations

import asyncio
import itertools
import json
import random
from typing import Any
from urllib.parse import urlsplit

import httpx
from loguru import logger

from wickcity.tools.web_utils import extract_domain

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/132.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/132.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/132.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:134.0) Gecko/20100101 Firefox/134.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:134.0) Gecko/20100101 Firefox/134.0",
    "Mozilla/5.0 (X11; Linux x86_64; rv:134.0) Gecko/20100101 Firefox/134.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/132.0.0.0 Safari/537.36 Edg/132.0.0.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/18.2 Safari/605.1.15",
)

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Accept-Encoding": "gzip, deflate",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
}

SKIP_EXTENSIONS = (
    ".pdf", ".jpg", ".jpeg", ".png", ".gif", ".svg", ".mp4", ".mp3", ".zip",
    ".exe", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".rar", ".7z",
)

BLOCKED_DOMAINS = (
    "facebook.com",
    "instagram.com",
    "twitter.com",
    "x.com",
    "linkedin.com",
    "pinterest.com",
    "tiktok.com",
    "snapchat.com",
    "discord.com",
    "telegram.org",
)


def is_blocked_domain(url: str) -> bool:
    domain = extract_domain(url).lower()
    return any(domain == blocked or domain.endswith("." + blocked) for blocked in BLOCKED_DOMAINS)


def has_skipped_extension(url: str) -> bool:
    path = urlsplit(url).path.lower()
    return path.endswith(SKIP_EXTENSIONS)


def is_scrapable(url: str) -> bool:
    """Reject binary documents and sites that block or add little value before fetching."""
    try:
        parsed = urlsplit(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    return not has_skipped_extension(url) and not is_blocked_domain(url)


def _is_retryable(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


def _decode(body: bytes, encoding: str | None) -> str:
    try:
        return body.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        return body.decode("utf-8", errors="replace")


class UserAgentRotator:
    """Round-robin over a browser User-Agent table from a random offset."""

    def __init__(self, agents: tuple[str, ...] = USER_AGENTS, *, start: int | None = None):
        offset = random.randrange(len(agents)) if start is None else start % len(agents)
        self._cycle = itertools.cycle(agents[offset:] + agents[:offset])

    def next(self) -> str:
        return next(self._cycle)


class ResponseTooLarge(Exception):
    pass


class PageFetcher:
    """Shared keep-alive HTTP fetcher with retry/backoff and a response size cap.

    One pooled ``httpx.AsyncClient`` is kept per URL scheme for the life of the
    process; call ``aclose()`` at shutdown to release the pools.
    """

    def __init__(
        self,
        *,
        timeout: float = 8.0,
        max_size: int = 2 * 1024 * 1024,
        max_redirects: int = 5,
        max_connections: int = 15,
        keepalive_expiry: float = 30.0,
        verify: bool = True,
        backoff_seconds: float = 1.2,
        transport: httpx.AsyncBaseTransport | None = None,
        user_agents: UserAgentRotator | None = None,
    ):
        self.timeout = timeout
        self.max_size = max_size
        self.max_redirects = max_redirects
        self.backoff_seconds = max(float(backoff_seconds), 0.0)
        self._limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_connections,
            keepalive_expiry=keepalive_expiry,
        )
        self._verify = verify
        self._transport = transport
        self._user_agents = user_agents or UserAgentRotator()
        self._clients: dict[str, httpx.AsyncClient] = {}
        self._closed = False

    @classmethod
    def from_settings(cls, config) -> "PageFetcher":
        return cls(
            timeout=config.page_timeout_seconds,
            max_size=config.max_response_bytes,
            max_redirects=config.max_redirects,
            max_connections=config.pool_max_connections,
            keepalive_expiry=config.pool_keepalive_seconds,
            verify=config.verify_tls,
            backoff_seconds=config.fetch_backoff_seconds,
        )

    def _client_for(self, scheme: str) -> httpx.AsyncClient:
        client = self._clients.get(scheme)
        if client is None or client.is_closed:
            client = httpx.AsyncClient(
                follow_redirects=True,
                max_redirects=self.max_redirects,
                limits=self._limits,
                verify=self._verify,
                transport=self._transport,
            )
            self._clients[scheme] = client
        return client

    async def fetch(
        self,
        url: str,
        *,
        timeout: float | None = None,
        max_retries: int = 1,
        max_size: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> str | None:
        """GET ``url`` and return the decoded body, or None on any failure.

        Only 429 and 5xx responses are retried, with linear backoff.
        """
        if self._closed:
            return None
        scheme = urlsplit(url).scheme.lower()
        if scheme not in ("http", "https"):
            return None

        request_headers = {"User-Agent": self._user_agents.next(), **BROWSER_HEADERS}
        if headers:
            request_headers.update(headers)
        limit = max_size or self.max_size
        client = self._client_for(scheme)
        attempts = max(int(max_retries), 0) + 1

        for attempt in range(attempts):
            try:
                async with client.stream(
                    "GET",
                    url,
                    headers=request_headers,
                    timeout=timeout or self.timeout,
                ) as response:
                    if response.status_code >= 400:
                        if _is_retryable(response.status_code) and attempt < attempts - 1:
                            logger.debug(f"Fetch {url} returned {response.status_code}, retrying")
                            await asyncio.sleep(self.backoff_seconds * (attempt + 1))
                            continue
                        logger.debug(f"Fetch {url} failed with status {response.status_code}")
                        return None
                    body = await self._read_capped(response, limit)
                    return _decode(body, response.encoding)
            except ResponseTooLarge:
                logger.debug(f"Fetch {url} exceeded {limit} bytes")
                return None
            except (httpx.HTTPError, httpx.InvalidURL) as exc:
                logger.debug(f"Fetch {url} failed: {type(exc).__name__}: {exc}")
                return None
        return None

    @staticmethod
    async def _read_capped(response: httpx.Response, limit: int) -> bytes:
        declared = response.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > limit:
            raise ResponseTooLarge(declared)
        chunks: list[bytes] = []
        received = 0
        async for chunk in response.aiter_bytes():
            received += len(chunk)
            if received > limit:
                raise ResponseTooLarge(str(received))
            chunks.append(chunk)
        return b"".join(chunks)

    async def fetch_json(
        self,
        url: str,
        *,
        timeout: float | None = None,
        max_retries: int = 1,
    ) -> Any | None:
        text = await self.fetch(
            url,
            timeout=timeout,
            max_retries=max_retries,
            headers={"Accept": "application/json,*/*;q=0.8"},
        )
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return None

    async def aclose(self) -> None:
        self._closed = True
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            await client.aclose()
