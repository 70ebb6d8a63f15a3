"""
Feed State Tracker
==================

One lifecycle record per known feed. Records are replaced, never mutated, and
every read-modify-write goes through :meth:`FeedStateTracker.update` under a
lock so concurrent entry workers can bump the same completion counter safely.
"""

import threading
from typing import Callable, Dict, Iterable, List, Optional

from ..models import FeedProgress, FeedState, FeedStatus
from ..utils.exceptions import ErrorCode, FeedStateError
from ..utils.logging import get_logger_for_component


# idle -> fetching -> (processing -> ready | error) | ready | error
ALLOWED_TRANSITIONS = {
    FeedStatus.IDLE: {FeedStatus.FETCHING},
    FeedStatus.FETCHING: {FeedStatus.PROCESSING, FeedStatus.READY, FeedStatus.ERROR},
    FeedStatus.PROCESSING: {FeedStatus.PROCESSING, FeedStatus.READY, FeedStatus.ERROR},
    FeedStatus.READY: set(),
    FeedStatus.ERROR: set(),
}


class FeedStateTracker:
    """Registry of FeedState records keyed by feed id."""

    def __init__(self):
        self._states: Dict[str, FeedState] = {}
        self._lock = threading.RLock()
        self.logger = get_logger_for_component("feed_state")

    def initialize(self, feed_ids: Iterable[str]) -> List[FeedState]:
        """Replace all records with fresh idle states, in the given order."""
        with self._lock:
            self._states = {feed_id: FeedState(feed_id=feed_id) for feed_id in feed_ids}
            return list(self._states.values())

    def get(self, feed_id: str) -> Optional[FeedState]:
        with self._lock:
            return self._states.get(feed_id)

    def all(self) -> List[FeedState]:
        """Snapshot of every state in seeding order."""
        with self._lock:
            return list(self._states.values())

    def update(self, feed_id: str, fn: Callable[[FeedState], FeedState]) -> FeedState:
        """Apply ``fn`` to the current state and store the result atomically.

        Raises:
            FeedStateError: If the feed is unknown or the move is illegal
        """
        with self._lock:
            current = self._states.get(feed_id)
            if current is None:
                raise FeedStateError(
                    f"Unknown feed: {feed_id}",
                    feed_id=feed_id,
                    error_code=ErrorCode.STATE_UNKNOWN_FEED,
                )
            new_state = fn(current)
            if new_state.status not in ALLOWED_TRANSITIONS[current.status]:
                raise FeedStateError(
                    f"Illegal transition {current.status.value} -> {new_state.status.value}",
                    feed_id=feed_id,
                )
            self._states[feed_id] = new_state
            return new_state

    def start_fetching(self, feed_id: str) -> FeedState:
        return self.update(
            feed_id, lambda state: FeedState(feed_id=feed_id, status=FeedStatus.FETCHING)
        )

    def start_processing(self, feed_id: str, total: int) -> FeedState:
        return self.update(
            feed_id,
            lambda state: FeedState(
                feed_id=feed_id,
                status=FeedStatus.PROCESSING,
                progress=FeedProgress(total=total, completed=0),
            ),
        )

    def mark_ready(self, feed_id: str) -> FeedState:
        return self.update(
            feed_id, lambda state: FeedState(feed_id=feed_id, status=FeedStatus.READY)
        )

    def mark_error(self, feed_id: str, message: str) -> FeedState:
        return self.update(
            feed_id,
            lambda state: FeedState(feed_id=feed_id, status=FeedStatus.ERROR, error=message),
        )

    def record_completion(self, feed_id: str) -> FeedState:
        """Count one more finished entry.

        The last completion leaves the feed processing with ``completed ==
        total``; the caller then moves it to ready with :meth:`mark_ready`.
        """

        def complete_one(state: FeedState) -> FeedState:
            if (
                state.status != FeedStatus.PROCESSING
                or state.progress is None
                or state.progress.is_complete
            ):
                raise FeedStateError(
                    f"Completion recorded while feed is {state.status.value}",
                    feed_id=feed_id,
                )
            progress = FeedProgress(
                total=state.progress.total, completed=state.progress.completed + 1
            )
            return FeedState(feed_id=feed_id, status=FeedStatus.PROCESSING, progress=progress)

        return self.update(feed_id, complete_one)

    def reset(self, feed_id: str) -> FeedState:
        """Put a feed back to idle regardless of its current state."""
        with self._lock:
            state = FeedState(feed_id=feed_id)
            self._states[feed_id] = state
            return state

    def clear(self) -> None:
        with self._lock:
            self._states = {}

    def __contains__(self, feed_id: object) -> bool:
        with self._lock:
            return feed_id in self._states

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
