"""
Entry Processor
==============

Cleans one feed's entries on a bounded worker pool and reports every status
change through a publish callback. Each entry gets exactly one terminal
publication (cleaned or error), so the caller can count completions.
"""

import asyncio
import inspect
from typing import Any, Callable, Iterable, Optional

from ..config.settings import FeedTapeSettings, get_settings
from ..models import Entry, EntryStatus
from ..utils.exceptions import ContentRejectedError, ErrorCode, ProcessingError
from ..utils.logging import get_logger_for_component
from .worker_pool import BoundedWorkerPool, PoolStats

Publish = Callable[[Entry], None]

REJECTED_MESSAGE = "content rejected by cleaner"


class EntryProcessor:
    """Per-feed entry worker pool driving raw -> cleaning -> cleaned | error."""

    def __init__(
        self,
        cleaner: Any,
        publish: Publish,
        pool_size: Optional[int] = None,
        settings: Optional[FeedTapeSettings] = None,
    ):
        """Initialize entry processor.

        Args:
            cleaner: Object exposing ``clean_content(raw_html)``, sync or async,
                and optionally ``clean_title(raw_title)``
            publish: Called with every new version of an entry
            pool_size: Concurrent cleanings for this feed (default from config)
            settings: Settings override
        """
        settings = settings or get_settings()
        self.cleaner = cleaner
        self.publish = publish
        self.pool_size = pool_size or settings.pipeline.entry_workers
        self.logger = get_logger_for_component("entry_processor")

    async def process_entries(self, entries: Iterable[Entry]) -> PoolStats:
        """Clean every entry; returns once all of them reached a terminal status."""
        pool = BoundedWorkerPool(self.pool_size, self.process_entry, name="entry_pool")
        return await pool.run(entries)

    async def process_entry(self, entry: Entry) -> Entry:
        """Clean one entry, publishing its cleaning and terminal versions."""
        log = self.logger.bind(feed_id=entry.feed_id, entry_id=entry.link)

        entry = entry.transition(EntryStatus.CLEANING)
        self.publish(entry)

        try:
            cleaned = await self._run_cleaner(entry.raw_content)
            if cleaned is None:
                rejection = ContentRejectedError(REJECTED_MESSAGE, entry_id=entry.link)
                log.debug(str(rejection), extra=rejection.to_dict())
                finished = entry.transition(EntryStatus.ERROR, error=REJECTED_MESSAGE)
            else:
                finished = entry.transition(
                    EntryStatus.CLEANED,
                    cleaned_content=cleaned,
                    title=self._clean_title(entry.title),
                )
        except Exception as e:
            failure = ProcessingError(
                f"Cleaner failed: {e}",
                entry_id=entry.link,
                error_code=ErrorCode.CONTENT_EXTRACTION_FAILED,
            )
            log.warning(str(failure), extra=failure.to_dict())
            finished = entry.transition(EntryStatus.ERROR, error=str(e) or type(e).__name__)

        return self._finish(finished)

    def _finish(self, entry: Entry) -> Entry:
        self.publish(entry)
        return entry

    async def _run_cleaner(self, raw_content: str) -> Optional[str]:
        clean = self.cleaner.clean_content
        if inspect.iscoroutinefunction(clean):
            return await clean(raw_content)
        # Parsing HTML is CPU bound, keep it off the event loop
        return await asyncio.to_thread(clean, raw_content)

    def _clean_title(self, title: str) -> str:
        clean_title = getattr(self.cleaner, "clean_title", None)
        if clean_title is None:
            return title
        try:
            return clean_title(title)
        except Exception as e:
            self.logger.warning(f"Title cleaning failed, keeping original: {e}")
            return title
