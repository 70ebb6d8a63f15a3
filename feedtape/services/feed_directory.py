"""
Feed Directory
=============

Sources of the subscribed feed list. The pipeline only needs
``async list_feeds()``; the static directory serves fixed lists (CLI, tests)
and the API directory asks the FeedTape backend for the user's feeds.
"""

from abc import ABC, abstractmethod
import asyncio
import inspect
import ssl
from typing import Awaitable, Callable, Iterable, List, Optional, Union

import aiohttp
import certifi
from pydantic import ValidationError

from ..config.settings import FeedTapeSettings, get_settings
from ..models import Feed
from ..utils.exceptions import ConfigurationError, ErrorCode, FeedDirectoryError
from ..utils.logging import get_logger_for_component

TokenProvider = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]


class FeedDirectory(ABC):
    """Abstract source of the user's feed list."""

    @abstractmethod
    async def list_feeds(self) -> List[Feed]:
        """Return subscribed feeds in display order.

        Raises:
            FeedDirectoryError: If the list cannot be obtained
        """
        pass


class StaticFeedDirectory(FeedDirectory):
    """Directory over a fixed, in-memory feed list."""

    def __init__(self, feeds: Iterable[Feed]):
        self._feeds = list(feeds)

    @classmethod
    def from_urls(cls, urls: Iterable[str]) -> "StaticFeedDirectory":
        """Build a directory using each URL as its own feed id."""
        return cls(Feed(id=url, url=url, title=url) for url in urls)

    async def list_feeds(self) -> List[Feed]:
        return list(self._feeds)


class ApiFeedDirectory(FeedDirectory):
    """Feed list served by ``GET {base_url}/api/feeds``."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        session: Optional[aiohttp.ClientSession] = None,
        settings: Optional[FeedTapeSettings] = None,
    ):
        settings = settings or get_settings()
        base_url = base_url or settings.api.base_url
        if not base_url:
            raise ConfigurationError(
                "api.base_url is required for the API feed directory", config_key="api.base_url"
            )
        self.base_url = base_url.rstrip("/")
        self.timeout = settings.limits.fetch_timeout
        self.user_agent = settings.api.user_agent
        self.token_provider = token_provider or (lambda: settings.api.access_token)
        self._session = session
        self.logger = get_logger_for_component("feed_directory")

    async def list_feeds(self) -> List[Feed]:
        url = f"{self.base_url}/api/feeds"
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}

        token = self.token_provider()
        if inspect.isawaitable(token):
            token = await token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            if self._session is not None:
                payload = await self._get_json(self._session, url, headers)
            else:
                connector = aiohttp.TCPConnector(
                    ssl=ssl.create_default_context(cafile=certifi.where())
                )
                async with aiohttp.ClientSession(
                    connector=connector, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as session:
                    payload = await self._get_json(session, url, headers)
        except aiohttp.ClientResponseError as e:
            raise FeedDirectoryError(
                f"Feed list request failed: HTTP {e.status}",
                context={"status": e.status, "url": url},
                recoverable=e.status >= 500,
            ) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise FeedDirectoryError(f"Feed list request failed: {e}", context={"url": url}) from e

        if not isinstance(payload, list):
            raise FeedDirectoryError(
                "Feed list response is not a JSON array",
                error_code=ErrorCode.FEED_DIRECTORY_ERROR,
            )

        try:
            feeds = [Feed.model_validate(item) for item in payload]
        except ValidationError as e:
            raise FeedDirectoryError(f"Invalid feed in feed list: {e}") from e

        self.logger.info(f"Loaded {len(feeds)} feeds from {url}")
        return feeds

    @staticmethod
    async def _get_json(session: aiohttp.ClientSession, url: str, headers: dict):
        async with session.get(url, headers=headers) as response:
            response.raise_for_status()
            return await response.json(content_type=None)
