"""HTTP client with rate-limit aware retries for marketplace pages."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional
from urllib.parse import urljoin, urlparse

import httpx

from lotcrawler import metrics
from lotcrawler.config import Settings

logger = logging.getLogger(__name__)

# Randomized wait after HTTP 429, in seconds: uniform in [min, max)
RATE_LIMIT_BACKOFF_MIN = 5.0
RATE_LIMIT_BACKOFF_MAX = 10.0

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/121.0.0.0 Safari/537.36"
)


class FetchError(RuntimeError):
    """Raised when a page cannot be fetched (transport error or HTTP error)."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        super().__init__(f"{message} for {url}")
        self.url = url
        self.status_code = status_code


class RateLimitError(FetchError):
    """Raised when HTTP 429 persists after all retries."""

    def __init__(self, url: str):
        super().__init__(url, "Rate limited (HTTP 429)", status_code=429)


def is_absolute(url: str) -> bool:
    return urlparse(url).scheme in ("http", "https")


def resolve_url(url: str, base_url: str) -> str:
    """Use absolute URLs as-is, resolve anything else against the site base URL."""
    if is_absolute(url):
        return url
    return urljoin(base_url, url)


def default_headers(accept_language: str) -> dict[str, str]:
    """Get default browser-like headers."""
    return {
        "User-Agent": USER_AGENT,
        "Accept-Language": accept_language,
    }


def create_client(settings: Settings) -> httpx.AsyncClient:
    """Create the shared client used for site pages (never proxied)."""
    return httpx.AsyncClient(
        headers=default_headers(settings.accept_language),
        timeout=httpx.Timeout(settings.request_timeout),
        follow_redirects=True,
    )


class RateLimitedFetcher:
    """Fetch pages, waiting out HTTP 429 responses with a randomized backoff."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ):
        self.client = client
        self.base_url = base_url
        self._sleep = sleep
        self._rng = rng or random.Random()

    def backoff_delay(self) -> float:
        """Seconds to wait before retrying a rate-limited request."""
        span = RATE_LIMIT_BACKOFF_MAX - RATE_LIMIT_BACKOFF_MIN
        return RATE_LIMIT_BACKOFF_MIN + self._rng.random() * span

    async def fetch(self, url: str, max_retries: int = 5) -> str:
        """
        Fetch a page and return its body.

        Args:
            url: Absolute URL, or a path relative to the site base URL
            max_retries: Retries allowed for HTTP 429 responses

        Returns:
            Response text

        Raises:
            RateLimitError: If still rate limited after max_retries retries
            FetchError: On any other transport or HTTP error (not retried)
        """
        target = resolve_url(url, self.base_url)
        retries_left = max_retries

        while True:
            try:
                resp = await self.client.get(target)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise FetchError(target, f"{type(e).__name__}: {e}") from e

            sc = resp.status_code
            if sc == 429:
                if retries_left <= 0:
                    raise RateLimitError(target)
                wait = self.backoff_delay()
                logger.warning(
                    f"Rate limited (429) on {target}, waiting {wait:.1f}s "
                    f"({retries_left} retries left)"
                )
                metrics.record_rate_limit_retry()
                await self._sleep(wait)
                retries_left -= 1
                continue

            if sc >= 400:
                raise FetchError(target, f"HTTP {sc}", status_code=sc)

            return resp.text
