"""Polite HTTP fetching with conditional caching and capped exponential backoff."""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

import httpx

from divicatalog.models.cache_entry import CacheEntry
from divicatalog.models.config import CatalogConfig
from divicatalog.services.cache import CacheStore, MemoryCacheStore, cache_key

logger = logging.getLogger(__name__)

MAX_BACKOFF_MS = 60_000
RETRYABLE_STATUS = {429}

Sleep = Callable[[float], Awaitable[None]]


class FetchError(RuntimeError):
    """A request ended in a non-2xx status, exhausted its retries, or never got a response."""

    def __init__(self, url: str, status: Optional[int], detail: str = "") -> None:
        self.url = url
        self.status = status
        message = f"HTTP {status} for {url}" if status is not None else f"Request failed for {url}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


def is_retryable(status: int) -> bool:
    return status in RETRYABLE_STATUS or 500 <= status < 600


def backoff_ms(attempt: int, base_ms: int) -> int:
    """Delay before retry number *attempt* (1-based), capped at one minute."""
    return min(MAX_BACKOFF_MS, base_ms * 2 ** (attempt - 1))


class CachedFetcher:
    """GETs URLs through a :class:`CacheStore`, sending ``If-None-Match`` /
    ``If-Modified-Since`` whenever a prior entry exists.

    Use as an async context manager; a caller-supplied *client* is left open.
    """

    def __init__(
        self,
        config: CatalogConfig,
        store: Optional[CacheStore] = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.config = config
        self.store = store if store is not None else MemoryCacheStore()
        self._client = client
        self._owns_client = client is None
        self._sleep = sleep

    async def __aenter__(self) -> "CachedFetcher":
        if self._client is None:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=self.config.timeouts.request_s,
                headers={"user-agent": self.config.user_agent},
            )
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("CachedFetcher used outside of 'async with'.")
        return self._client

    async def _get(self, url: str, headers: Dict[str, str]) -> httpx.Response:
        """Issue GETs until a non-retryable answer arrives or retries run out."""
        retries = self.config.link_health.retry_count
        base_ms = self.config.link_health.retry_backoff_ms
        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self.client.get(url, headers=headers)
            except httpx.HTTPError as exc:
                raise FetchError(url, None, str(exc)) from exc

            if not is_retryable(response.status_code) or attempt > retries:
                return response

            delay = backoff_ms(attempt, base_ms)
            logger.warning(
                "HTTP %s for %s, retry %d/%d in %d ms",
                response.status_code, url, attempt, retries, delay,
            )
            await self._sleep(delay / 1000)

    async def fetch(self, url: str) -> str:
        """Return the body of *url*, revalidating against the cache.

        Raises:
            FetchError: on any final status other than 2xx or a cache-backed 304.
        """
        key = cache_key(url)
        prior = self.store.get(key)
        headers = {"user-agent": self.config.user_agent}
        if prior is not None:
            if prior.etag:
                headers["if-none-match"] = prior.etag
            if prior.last_modified:
                headers["if-modified-since"] = prior.last_modified

        response = await self._get(url, headers)

        if response.status_code == 304 and prior is not None:
            logger.debug("Cache hit (304) for %s", url)
            return prior.body
        if not response.is_success:
            raise FetchError(url, response.status_code)

        body = response.text
        self.store.put(
            key,
            CacheEntry(
                etag=response.headers.get("etag"),
                last_modified=response.headers.get("last-modified"),
                body=body,
            ),
        )
        return body

    async def fetch_bytes(self, url: str) -> bytes:
        """Return the raw body of *url* without touching the cache (images)."""
        response = await self._get(url, {"user-agent": self.config.user_agent})
        if not response.is_success:
            raise FetchError(url, response.status_code)
        return response.content
