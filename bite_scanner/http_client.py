#!/usr/bin/env python3
"""
Politeness-aware HTTP client
One instance per run: caches responses per URL, serializes requests per hostname,
waits a jittered delay before each network call and falls back to a second transport once.
"""
import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional
from urllib.parse import urlparse

import httpx
import requests

from .models import FetchResponse, utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "CaboMarlinOpsBot/1.0 (+https://github.com/evbarleyg/cabo-marlin-ops; data refresh bot)"
DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8"


@dataclass(frozen=True)
class TransportResult:
    status: int
    body: str


Transport = Callable[[str], Awaitable[TransportResult]]
Sleep = Callable[[float], Awaitable[None]]
Jitter = Callable[[float, float], float]


def default_headers(user_agent: str = DEFAULT_USER_AGENT) -> Dict[str, str]:
    return {'User-Agent': user_agent, 'Accept': DEFAULT_ACCEPT}


class HttpxTransport:
    """Primary transport: shared httpx.AsyncClient"""

    def __init__(self, headers: Dict[str, str], timeout_s: float, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client = httpx.AsyncClient(headers=headers, timeout=timeout_s, follow_redirects=True, transport=transport)

    async def __call__(self, url: str) -> TransportResult:
        response = await self._client.get(url)
        return TransportResult(response.status_code, response.text)

    async def aclose(self):
        await self._client.aclose()


class RequestsTransport:
    """Fallback transport: blocking requests.Session run in a worker thread"""

    def __init__(self, headers: Dict[str, str], timeout_s: float):
        self.timeout_s = timeout_s
        self.session = requests.Session()
        self.session.headers.update(headers)

    async def __call__(self, url: str) -> TransportResult:
        return await asyncio.to_thread(self._get, url)

    def _get(self, url: str) -> TransportResult:
        response = self.session.get(url, timeout=self.timeout_s)
        return TransportResult(response.status_code, response.text)

    async def aclose(self):
        self.session.close()


class PoliteHttpClient:
    """GET-only client with per-URL caching and per-domain serialization"""

    def __init__(self, transport: Optional[Transport] = None, fallback: Optional[Transport] = None,
                 min_delay_ms: int = 500, max_delay_ms: int = 1000, timeout_ms: int = 15000,
                 user_agent: str = DEFAULT_USER_AGENT, sleep: Sleep = asyncio.sleep,
                 jitter: Jitter = random.uniform):
        self.min_delay_ms = min_delay_ms
        self.max_delay_ms = max(max_delay_ms, min_delay_ms)
        self.timeout_ms = timeout_ms
        self.transport = transport or HttpxTransport(default_headers(user_agent), timeout_ms / 1000)
        self.fallback = fallback
        self._sleep = sleep
        self._jitter = jitter
        self._cache: Dict[str, asyncio.Future] = {}
        self._domain_locks: Dict[str, asyncio.Lock] = {}
        self.network_calls = 0

    @classmethod
    def from_config(cls, http_config) -> 'PoliteHttpClient':
        """httpx primary + requests fallback, both carrying the configured user agent"""
        headers = default_headers(http_config.user_agent)
        timeout_s = http_config.request_timeout_ms / 1000
        return cls(
            transport=HttpxTransport(headers, timeout_s),
            fallback=RequestsTransport(headers, timeout_s),
            min_delay_ms=http_config.min_delay_ms,
            max_delay_ms=http_config.max_delay_ms,
            timeout_ms=http_config.request_timeout_ms,
            user_agent=http_config.user_agent,
        )

    async def get(self, url: str) -> FetchResponse:
        """Fetch url once per run; concurrent callers share the same pending result"""
        task = self._cache.get(url)
        if task is None:
            task = asyncio.ensure_future(self._fetch_serialized(url))
            self._cache[url] = task
        else:
            logger.debug(f"Cache hit: {url}")
        return await asyncio.shield(task)

    def _lock_for(self, url: str) -> asyncio.Lock:
        domain = (urlparse(url).hostname or '').lower()
        lock = self._domain_locks.get(domain)
        if lock is None:
            lock = asyncio.Lock()
            self._domain_locks[domain] = lock
        return lock

    async def _fetch_serialized(self, url: str) -> FetchResponse:
        # asyncio.Lock wakes waiters in FIFO order, so one domain completes in submission order
        async with self._lock_for(url):
            delay_ms = self._jitter(self.min_delay_ms, self.max_delay_ms)
            await self._sleep(delay_ms / 1000)
            return await self._fetch(url)

    async def _attempt(self, transport: Transport, url: str) -> TransportResult:
        self.network_calls += 1
        try:
            return await asyncio.wait_for(transport(url), timeout=self.timeout_ms / 1000)
        except asyncio.TimeoutError:
            # wait_for has already cancelled the transport coroutine
            raise TimeoutError(f"Timeout after {self.timeout_ms}ms") from None

    async def _fetch(self, url: str) -> FetchResponse:
        try:
            result = await self._attempt(self.transport, url)
        except Exception as e:
            primary_error = _error_text(e)
            logger.warning(f"Primary transport failed for {url}: {primary_error}")
        else:
            return self._to_response(url, result)

        if self.fallback is None:
            return FetchResponse(ok=False, status=0, body="", fetched_at=utc_now_iso(), error=primary_error)

        try:
            result = await self._attempt(self.fallback, url)
        except Exception as e:
            error = f"{primary_error}; fallback failed: {_error_text(e)}"
            logger.error(f"Fetch failed for {url}: {error}")
            return FetchResponse(ok=False, status=0, body="", fetched_at=utc_now_iso(), error=error)

        logger.info(f"Fallback transport succeeded for {url}")
        return self._to_response(url, result)

    def _to_response(self, url: str, result: TransportResult) -> FetchResponse:
        ok = 200 <= result.status < 300
        if not ok:
            logger.warning(f"HTTP {result.status} for {url}")
        return FetchResponse(
            ok=ok,
            status=result.status,
            body=result.body,
            fetched_at=utc_now_iso(),
            error=None if ok else f"HTTP {result.status}",
        )

    async def aclose(self):
        for transport in (self.transport, self.fallback):
            close = getattr(transport, 'aclose', None)
            if close is not None:
                await close()

    async def __aenter__(self) -> 'PoliteHttpClient':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()


def _error_text(error: Exception) -> str:
    return str(error) or error.__class__.__name__
