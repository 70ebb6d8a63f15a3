"""
Pipeline Update Events
=====================

Typed events pushed to presentation-layer subscribers whenever an entry or a
feed state changes. Delivery is synchronous and in mutation order; entry
completions across workers arrive in whatever order the workers finish.
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Tuple, Union

from .models import Entry, Feed, FeedState
from .utils.logging import get_logger_for_component


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FeedsLoaded:
    """Feed list was loaded and every feed seeded as idle, in list order."""
    feeds: Tuple[Feed, ...]
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class FeedStateChanged:
    """A feed moved to a new lifecycle state or advanced its counter."""
    state: FeedState
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class EntryUpdated:
    """An entry was registered or changed status."""
    entry: Entry
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class EntriesRemoved:
    """All entries of a feed were purged ahead of a retry."""
    feed_id: str
    count: int
    occurred_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class StoreCleared:
    """All pipeline state was wiped."""
    occurred_at: datetime = field(default_factory=_now)


PipelineEvent = Union[FeedsLoaded, FeedStateChanged, EntryUpdated, EntriesRemoved, StoreCleared]
Subscriber = Callable[[PipelineEvent], None]


class EventBus:
    """Observer registry delivering events to every subscriber."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()
        self.logger = get_logger_for_component("events")

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: PipelineEvent) -> None:
        """Deliver ``event``; a failing subscriber is logged and skipped."""
        with self._lock:
            subscribers = list(self._subscribers)

        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                self.logger.error(
                    f"Subscriber {callback!r} failed on {type(event).__name__}: {e}",
                    exc_info=True,
                )

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)
