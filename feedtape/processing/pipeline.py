"""
Content Pipeline
===============

Orchestrates the two-level pipeline for a session:

1. Load the subscribed feeds and seed one idle FeedState per feed
2. Drain the feeds on a bounded pool of feed workers (fetch -> parse)
3. Clean each feed's entries on its own bounded pool of entry workers
4. Push every Entry and FeedState change to subscribers

Each feed run carries a generation number. A retry or a clear bumps it, and
anything the superseded run still tries to publish is dropped, so a retried
feed never mixes entries from two runs.
"""

import asyncio
from typing import Any, Dict, List, Optional, Set, Tuple

from ..config.settings import FeedTapeSettings, get_settings
from ..events import (
    EntriesRemoved,
    EntryUpdated,
    EventBus,
    FeedsLoaded,
    FeedStateChanged,
    StoreCleared,
    Subscriber,
)
from ..ingestion.content_cleaner import ContentCleaner
from ..ingestion.feed_parser import FeedDocumentParser, RawEntry
from ..models import Entry, Feed, FeedState, FeedStatus
from ..storage.entry_store import EntryStore
from ..storage.feed_state_tracker import FeedStateTracker
from ..utils.exceptions import FeedError, FeedTimeoutError, handle_exception
from ..utils.logging import LoggerAdapter, PerformanceLogger, get_logger_for_component
from .entry_processor import EntryProcessor
from .worker_pool import BoundedWorkerPool

FeedRun = Tuple[Feed, int]


class ContentPipeline:
    """Session-scoped feed ingestion and content processing pipeline."""

    def __init__(
        self,
        feed_directory: Any,
        fetcher: Any,
        parser: Optional[FeedDocumentParser] = None,
        cleaner: Optional[Any] = None,
        entry_store: Optional[EntryStore] = None,
        state_tracker: Optional[FeedStateTracker] = None,
        read_status: Optional[Any] = None,
        settings: Optional[FeedTapeSettings] = None,
        feed_workers: Optional[int] = None,
        entry_workers: Optional[int] = None,
        fetch_timeout: Optional[float] = None,
        max_entries_per_feed: Optional[int] = None,
    ):
        """Initialize content pipeline.

        Args:
            feed_directory: Provides ``async list_feeds()``
            fetcher: Provides ``async fetch_bytes(url)``
            parser: Feed document parser (default: FeedDocumentParser)
            cleaner: Content cleaner, sync or async (default: ContentCleaner)
            entry_store: Shared entry store (default: new EntryStore)
            state_tracker: Shared feed state tracker (default: new tracker)
            read_status: Optional provider of ``is_consumed(entry_id)``
            settings: Settings override
            feed_workers: Concurrent feeds (default from config)
            entry_workers: Concurrent cleanings per feed (default from config)
            fetch_timeout: Fetch ceiling in seconds (default from config)
            max_entries_per_feed: Entries kept per feed (default from config)
        """
        self.settings = settings or get_settings()
        self.feed_directory = feed_directory
        self.fetcher = fetcher
        self.parser = parser or FeedDocumentParser(settings=self.settings)
        self.cleaner = cleaner or ContentCleaner(settings=self.settings)
        self.entry_store = entry_store if entry_store is not None else EntryStore()
        self.state_tracker = state_tracker if state_tracker is not None else FeedStateTracker()
        self.read_status = read_status

        self.feed_workers = feed_workers or self.settings.pipeline.feed_workers
        self.entry_workers = entry_workers or self.settings.pipeline.entry_workers
        self.fetch_timeout = fetch_timeout or self.settings.limits.fetch_timeout
        self.max_entries_per_feed = (
            max_entries_per_feed or self.settings.pipeline.max_entries_per_feed
        )

        self.events = EventBus()
        self.logger = get_logger_for_component("pipeline")

        self._feeds: Dict[str, Feed] = {}
        self._generations: Dict[str, int] = {}
        self._run_task: Optional[asyncio.Task] = None
        self._retry_tasks: Dict[str, asyncio.Task] = {}
        self._active_runs: Dict[str, asyncio.Task] = {}
        self._superseded: Set[asyncio.Task] = set()
        self._init_lock = asyncio.Lock()
        self._retry_semaphore = asyncio.Semaphore(self.settings.pipeline.max_concurrent_retries)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def feeds(self) -> List[Feed]:
        """Feeds of the current session in directory order."""
        return list(self._feeds.values())

    @property
    def is_running(self) -> bool:
        return self._run_task is not None and not self._run_task.done()

    def subscribe(self, callback: Subscriber):
        """Register a callback for every pipeline event.

        Returns:
            Function that unregisters the callback
        """
        return self.events.subscribe(callback)

    async def initialize_feeds(self) -> None:
        """Load the feed list and start processing in the background.

        Calling this while a run is in progress does nothing. Calling it after
        a run finished discards the previous session state and starts over.

        Raises:
            FeedDirectoryError: If the feed list cannot be loaded
        """
        async with self._init_lock:
            if self.is_running:
                self.logger.info("Pipeline already running, ignoring initialize request")
                return

            try:
                feeds = await self.feed_directory.list_feeds()
            except Exception as e:
                error = handle_exception(e, self.logger, "load feed list")
                if error is e:
                    raise
                raise error from e

            if self._run_task is not None:
                self._reset_session()

            self._feeds = {}
            for feed in feeds:
                if feed.id in self._feeds:
                    self.logger.warning(f"Duplicate feed id {feed.id} in feed list, keeping first")
                    continue
                self._feeds[feed.id] = feed

            runs: List[FeedRun] = [(feed, self._next_generation(feed.id)) for feed in self._feeds.values()]
            states = self.state_tracker.initialize(self._feeds.keys())

            self.events.publish(FeedsLoaded(feeds=tuple(self._feeds.values())))
            for state in states:
                self.events.publish(FeedStateChanged(state=state))

            self.logger.info(
                f"Loaded {len(runs)} feeds, processing with {self.feed_workers} feed workers"
            )
            self._run_task = asyncio.create_task(self._run_all(runs))

    async def wait_for_completion(self) -> None:
        """Wait until the background run and any in-flight retries settle."""
        tasks = [task for task in [self._run_task, *self._retry_tasks.values()] if task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def retry_feed(self, feed_id: str) -> bool:
        """Discard a feed's entries and run it again from fetching.

        Other feeds are not touched. A retry requested while one for the same
        feed is in flight joins that retry instead of starting another.

        Returns:
            False if the feed is unknown or the session was cleared before the
            retry settled, True once the retried run settled
        """
        feed = self._feeds.get(feed_id)
        if feed is None:
            self.logger.warning(f"Retry requested for unknown feed {feed_id}")
            return False

        task = self._retry_tasks.get(feed_id)
        if task is None or task.done():
            generation = self._restart_feed(feed_id)
            task = asyncio.create_task(self._run_retry(feed, generation))
            self._retry_tasks[feed_id] = task
            task.add_done_callback(lambda done: self._forget_retry(feed_id, done))
        else:
            self.logger.debug(f"Joining in-flight retry of {feed_id}")

        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and not (current is not None and current.cancelling()):
                self.logger.info(f"Retry of {feed_id} cancelled, session ended")
                return False
            raise
        return True

    def get_feed_state(self, feed_id: str) -> Optional[FeedState]:
        return self.state_tracker.get(feed_id)

    def get_feed_states(self) -> List[FeedState]:
        return self.state_tracker.all()

    def get_entries_by_feed(self, feed_id: str) -> List[Entry]:
        return self.entry_store.get_by_feed(feed_id)

    def is_consumed(self, entry_id: str) -> bool:
        """Whether the listener already consumed the entry."""
        if self.read_status is None:
            return False
        return self.read_status.is_consumed(entry_id)

    def clear(self) -> None:
        """End the session: cancel background work and drop all state."""
        self._cancel_background_work()
        self._reset_session()
        self._feeds = {}
        self.logger.info("Pipeline state cleared")

    async def aclose(self) -> None:
        """Cancel background work and release the fetcher's resources."""
        tasks = self._cancel_background_work()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        close = getattr(self.fetcher, "aclose", None)
        if close is not None:
            await close()

    # ------------------------------------------------------------------
    # Feed runs
    # ------------------------------------------------------------------

    async def _run_all(self, runs: List[FeedRun]) -> None:
        pool = BoundedWorkerPool(self.feed_workers, self._process_feed_run, name="feed_pool")
        with PerformanceLogger(self.logger, "pipeline run", feed_count=len(runs)):
            stats = await pool.run(runs)
        self.logger.info(
            f"Pipeline run finished: {stats.processed} feeds processed, {stats.failed} worker failures"
        )

    async def _process_feed_run(self, run: FeedRun) -> None:
        feed, generation = run
        await self._process_feed(feed, generation)

    async def _run_retry(self, feed: Feed, generation: int) -> None:
        async with self._retry_semaphore:
            await self._process_feed(feed, generation)

    async def _process_feed(self, feed: Feed, generation: int) -> None:
        """Drive one feed to ready or error; never raises except on cancellation."""
        if not self._is_current(feed.id, generation):
            return

        log = self.logger.bind(feed_id=feed.id)
        run = asyncio.create_task(self._run_feed(feed, generation, log))
        self._active_runs[feed.id] = run
        try:
            with PerformanceLogger(log, f"feed run {feed.id}", feed_id=feed.id, generation=generation):
                await run
        except asyncio.CancelledError:
            if run in self._superseded:
                log.info("Feed run superseded by a newer run")
                return
            raise
        except Exception as e:
            error = handle_exception(e, log, "process feed", {"feed_id": feed.id})
            self._fail(feed.id, generation, str(error))
        finally:
            self._superseded.discard(run)
            if self._active_runs.get(feed.id) is run:
                del self._active_runs[feed.id]

    async def _run_feed(self, feed: Feed, generation: int, log: LoggerAdapter) -> None:
        if self._set_state(feed.id, generation, self.state_tracker.start_fetching) is None:
            return

        try:
            document = await asyncio.wait_for(
                self.fetcher.fetch_bytes(feed.url), timeout=self.fetch_timeout
            )
        except asyncio.TimeoutError:
            error = FeedTimeoutError(
                f"Fetch timed out after {self.fetch_timeout}s",
                feed_url=feed.url,
                timeout=self.fetch_timeout,
            )
            log.warning(str(error))
            self._fail(feed.id, generation, str(error))
            return
        except FeedError as e:
            log.warning(f"Fetch failed: {e}")
            self._fail(feed.id, generation, str(e))
            return

        try:
            raw_entries = await asyncio.to_thread(
                self.parser.parse, document, self.max_entries_per_feed, feed.url
            )
        except FeedError as e:
            log.warning(f"Parse failed: {e}")
            self._fail(feed.id, generation, str(e))
            return

        if not self._is_current(feed.id, generation):
            return

        entries = self.entry_store.add_entries(
            self._to_entry(feed.id, raw) for raw in raw_entries
        )
        for entry in entries:
            self.events.publish(EntryUpdated(entry=entry))

        if not entries:
            log.info("Feed has no entries")
            self._set_state(feed.id, generation, self.state_tracker.mark_ready)
            return

        self._set_state(
            feed.id,
            generation,
            lambda feed_id: self.state_tracker.start_processing(feed_id, len(entries)),
        )

        processor = EntryProcessor(
            self.cleaner,
            self._entry_publisher(feed.id, generation),
            pool_size=self.entry_workers,
            settings=self.settings,
        )
        await processor.process_entries(entries)

        # Every entry should have been counted by now
        state = self.state_tracker.get(feed.id)
        if self._is_current(feed.id, generation) and state is not None and state.status == FeedStatus.PROCESSING:
            unfinished = state.progress.total - state.progress.completed
            self._fail(feed.id, generation, f"{unfinished} entries did not finish processing")

    def _entry_publisher(self, feed_id: str, generation: int):
        def publish(entry: Entry) -> None:
            if not self._is_current(feed_id, generation):
                return
            self.entry_store.update_entry(entry)
            self.events.publish(EntryUpdated(entry=entry))
            if entry.status.is_terminal:
                state = self._set_state(feed_id, generation, self.state_tracker.record_completion)
                if state is not None and state.progress.is_complete:
                    self._set_state(feed_id, generation, self.state_tracker.mark_ready)

        return publish

    @staticmethod
    def _to_entry(feed_id: str, raw: RawEntry) -> Entry:
        return Entry(
            link=raw.link,
            feed_id=feed_id,
            title=raw.title,
            published_at=raw.published_at,
            author=raw.author,
            raw_content=raw.content,
        )

    # ------------------------------------------------------------------
    # State helpers
    # ------------------------------------------------------------------

    def _set_state(self, feed_id: str, generation: int, change) -> Optional[FeedState]:
        if not self._is_current(feed_id, generation):
            return None
        state = change(feed_id)
        self.events.publish(FeedStateChanged(state=state))
        return state

    def _fail(self, feed_id: str, generation: int, message: str) -> None:
        self._set_state(
            feed_id, generation, lambda fid: self.state_tracker.mark_error(fid, message)
        )

    def _is_current(self, feed_id: str, generation: int) -> bool:
        return self._generations.get(feed_id) == generation and feed_id in self.state_tracker

    def _next_generation(self, feed_id: str) -> int:
        generation = self._generations.get(feed_id, 0) + 1
        self._generations[feed_id] = generation
        return generation

    def _restart_feed(self, feed_id: str) -> int:
        generation = self._next_generation(feed_id)

        active = self._active_runs.get(feed_id)
        if active is not None and not active.done():
            self._superseded.add(active)
            active.cancel()

        removed = self.entry_store.remove_by_feed(feed_id)
        self.events.publish(EntriesRemoved(feed_id=feed_id, count=removed))

        state = self.state_tracker.reset(feed_id)
        self.events.publish(FeedStateChanged(state=state))
        self.logger.info(f"Retrying feed {feed_id}, discarded {removed} entries")
        return generation

    def _forget_retry(self, feed_id: str, task: asyncio.Task) -> None:
        if self._retry_tasks.get(feed_id) is task:
            del self._retry_tasks[feed_id]

    def _cancel_background_work(self) -> List[asyncio.Task]:
        for feed_id in list(self._generations):
            self._next_generation(feed_id)

        tasks = [task for task in [self._run_task, *self._retry_tasks.values()] if task is not None]
        for task in tasks:
            task.cancel()
        return tasks

    def _reset_session(self) -> None:
        for feed_id in list(self._generations):
            self._next_generation(feed_id)
        self.entry_store.clear()
        self.state_tracker.clear()
        self.events.publish(StoreCleared())
