"""
Feed Document Fetcher
====================

Retrieves raw syndication documents over HTTP with a hard per-fetch ceiling.
No retries happen here; retrying a feed is a pipeline-level decision.
"""

import asyncio
import inspect
import ssl
import time
from typing import Awaitable, Callable, Optional, Union
from urllib.parse import urlparse

import aiohttp
import certifi

from ..config.settings import FeedTapeSettings, get_settings
from ..utils.exceptions import ErrorCode, FeedFetchError, FeedTimeoutError
from ..utils.logging import get_logger_for_component

TokenProvider = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]


class DocumentFetcher:
    """HTTP fetcher for feed documents sharing one aiohttp session."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        token_provider: Optional[TokenProvider] = None,
        user_agent: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        settings: Optional[FeedTapeSettings] = None,
    ):
        """Initialize document fetcher.

        Args:
            timeout: Fetch ceiling in seconds (default from config)
            token_provider: Returns the current bearer credential, sync or async
            user_agent: User-Agent header (default from config)
            session: Externally owned session; not closed by :meth:`aclose`
            settings: Settings override
        """
        settings = settings or get_settings()
        self.timeout = timeout or settings.limits.fetch_timeout
        self.user_agent = user_agent or settings.api.user_agent
        self.token_provider = token_provider
        self.logger = get_logger_for_component("fetcher")

        self._session = session
        self._owns_session = session is None
        self._ssl_context = ssl.create_default_context(cafile=certifi.where())

    async def __aenter__(self) -> "DocumentFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                ssl=self._ssl_context,
                limit_per_host=5,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={
                    "User-Agent": self.user_agent,
                    "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml, */*",
                },
            )
            self._owns_session = True
        return self._session

    async def _auth_headers(self) -> dict:
        if self.token_provider is None:
            return {}
        token = self.token_provider()
        if inspect.isawaitable(token):
            token = await token
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def fetch_bytes(self, url: str) -> bytes:
        """Fetch the raw document at ``url``.

        Raises:
            FeedTimeoutError: If the fetch exceeds the ceiling
            FeedFetchError: On invalid URL, non-2xx status or transport error
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise FeedFetchError(
                f"Invalid feed URL: {url}",
                feed_url=url,
                error_code=ErrorCode.FEED_INVALID_URL,
                recoverable=False,
            )

        start = time.monotonic()
        try:
            return await asyncio.wait_for(self._get(url), timeout=self.timeout)

        except asyncio.TimeoutError as e:
            raise FeedTimeoutError(
                f"Request timeout after {self.timeout}s", feed_url=url, timeout=self.timeout
            ) from e
        except aiohttp.ClientResponseError as e:
            raise FeedFetchError(
                f"HTTP {e.status}: {e.message}",
                feed_url=url,
                error_code=ErrorCode.FEED_HTTP_ERROR,
                context={"status": e.status},
            ) from e
        except aiohttp.ClientError as e:
            raise FeedFetchError(f"Fetch error: {e}", feed_url=url) from e
        finally:
            self.logger.debug(f"Fetch of {url} finished after {time.monotonic() - start:.2f}s")

    async def _get(self, url: str) -> bytes:
        session = self._get_session()
        headers = await self._auth_headers()
        async with session.get(url, headers=headers) as response:
            response.raise_for_status()
            content = await response.read()
        self.logger.debug(f"Fetched {len(content)} bytes from {url}")
        return content

    async def aclose(self) -> None:
        """Close the session if this fetcher created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None
