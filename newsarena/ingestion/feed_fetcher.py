"""
RSS Feed Fetcher
================

Retrieves raw feed documents over HTTP with a per-attempt timeout and
linear-backoff retries for transient failures.
"""

import asyncio
import ssl
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiohttp
import certifi

from ..config.settings import NewsArenaSettings, get_settings
from ..utils.exceptions import ErrorCode, FeedFetchError, get_error_message
from ..utils.logging import get_logger_for_component
from ..utils.validators import URLValidator

ACCEPT_HEADER = "application/rss+xml, application/atom+xml, application/xml, text/xml"

RETRYABLE_EXCEPTIONS = (aiohttp.ClientError, asyncio.TimeoutError, FeedFetchError)


class FeedFetcher:
    """HTTP feed fetcher with bounded retries."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        retry_base_delay: Optional[float] = None,
        user_agent: Optional[str] = None,
        settings: Optional[NewsArenaSettings] = None,
    ):
        """Initialize feed fetcher.

        Args:
            timeout: Per-attempt timeout in seconds (default from config)
            max_attempts: Total attempts per fetch (default from config)
            retry_base_delay: Seconds multiplied by the attempt number before a retry
            user_agent: User-Agent header (default from config)
            settings: Settings object; the global settings are used when omitted
        """
        settings = settings or get_settings()
        ingestion = settings.ingestion

        self.timeout = timeout if timeout is not None else ingestion.request_timeout
        self.max_attempts = max_attempts if max_attempts is not None else ingestion.max_fetch_attempts
        self.retry_base_delay = (
            retry_base_delay if retry_base_delay is not None else ingestion.retry_base_delay
        )
        self.user_agent = user_agent or settings.user_agent
        self.logger = get_logger_for_component("feed_fetcher")

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Configured aiohttp session; may be shared across fetches."""
        connector = aiohttp.TCPConnector(
            ssl=self.ssl_context,
            limit_per_host=5,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        headers = {
            "User-Agent": self.user_agent,
            "Accept": ACCEPT_HEADER,
            "Accept-Encoding": "gzip, deflate",
        }

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=headers
        ) as session:
            yield session

    async def fetch(
        self, feed_url: str, session: Optional[aiohttp.ClientSession] = None
    ) -> str:
        """Fetch a feed document.

        Args:
            feed_url: Absolute http(s) feed URL
            session: Optional shared session; a new one is opened when omitted

        Returns:
            Raw feed text

        Raises:
            ValidationError: If the URL is not an http(s) URL (never retried)
            FeedFetchError: If every attempt failed
        """
        url = URLValidator.validate_feed_url(feed_url)

        if session is None:
            async with self.get_session() as own_session:
                return await self._fetch_with_retries(url, own_session)
        return await self._fetch_with_retries(url, session)

    async def _fetch_with_retries(self, url: str, session: aiohttp.ClientSession) -> str:
        last_message = "no attempts made"

        for attempt in range(1, self.max_attempts + 1):
            try:
                text = await self._request(session, url)
                self.logger.debug(
                    f"Fetched {url} ({len(text)} chars) on attempt {attempt}",
                    extra={"feed_url": url, "attempt": attempt},
                )
                return text

            except RETRYABLE_EXCEPTIONS as e:
                last_message = self._describe(e)
                self.logger.warning(
                    f"Fetch attempt {attempt}/{self.max_attempts} failed for {url}: {last_message}",
                    extra={"feed_url": url, "attempt": attempt},
                )

                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_base_delay * attempt)

        raise FeedFetchError(
            f"Failed to fetch feed after {self.max_attempts} attempts: {last_message}",
            feed_url=url,
            error_code=ErrorCode.FEED_NETWORK_ERROR,
        )

    async def _request(self, session: aiohttp.ClientSession, url: str) -> str:
        """Single GET; non-2xx responses raise."""
        async with session.get(url) as response:
            if not 200 <= response.status < 300:
                raise FeedFetchError(
                    f"HTTP {response.status}: {response.reason}",
                    feed_url=url,
                    error_code=ErrorCode.FEED_HTTP_ERROR,
                )
            return await response.text(errors="replace")

    def _describe(self, error: BaseException) -> str:
        if isinstance(error, asyncio.TimeoutError):
            return f"Request timeout after {self.timeout}s"
        return get_error_message(error)


async def fetch_feed(feed_url: str, timeout: Optional[float] = None) -> str:
    """Convenience function to fetch one feed with default settings."""
    return await FeedFetcher(timeout=timeout).fetch(feed_url)
