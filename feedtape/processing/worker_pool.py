"""
Bounded Worker Pool
==================

Fixed number of asyncio workers draining a shared queue. Each worker takes
the next item as soon as it is free, so a slow item never blocks the others
and at most ``size`` handlers run at once.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Iterable, TypeVar

from ..utils.logging import get_logger_for_component

T = TypeVar("T")


@dataclass
class PoolStats:
    """Counters for one :meth:`BoundedWorkerPool.run` call."""

    processed: int = 0
    failed: int = 0
    peak_active: int = 0


class BoundedWorkerPool(Generic[T]):
    """Run an async handler over items with bounded concurrency."""

    def __init__(self, size: int, handler: Callable[[T], Awaitable[None]], name: str = "pool"):
        if size < 1:
            raise ValueError("Worker pool size must be at least 1")
        self.size = size
        self.handler = handler
        self.name = name
        self.active = 0
        self.stats = PoolStats()
        self.logger = get_logger_for_component("worker_pool")

    async def run(self, items: Iterable[T]) -> PoolStats:
        """Process every item and return once all of them are handled.

        A handler exception is logged and counted; the worker moves on to the
        next item. Cancellation propagates to every worker.
        """
        queue: "asyncio.Queue[T]" = asyncio.Queue()
        for item in items:
            queue.put_nowait(item)

        self.stats = PoolStats()
        worker_count = min(self.size, queue.qsize())
        if worker_count == 0:
            return self.stats

        self.logger.debug(f"{self.name}: {worker_count} workers for {queue.qsize()} items")

        workers = [
            asyncio.create_task(self._worker(queue, index))
            for index in range(worker_count)
        ]
        try:
            await asyncio.gather(*workers)
        except asyncio.CancelledError:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        self.logger.debug(
            f"{self.name}: done, {self.stats.processed} processed, {self.stats.failed} failed"
        )
        return self.stats

    async def _worker(self, queue: "asyncio.Queue[T]", index: int) -> None:
        while True:
            try:
                item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            self.active += 1
            self.stats.peak_active = max(self.stats.peak_active, self.active)
            try:
                await self.handler(item)
                self.stats.processed += 1
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.stats.failed += 1
                self.logger.error(
                    f"{self.name} worker {index} failed on item: {e}", exc_info=True
                )
            finally:
                self.active -= 1
                queue.task_done()
