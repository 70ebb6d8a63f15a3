"""
Unit Tests for Feed State Tracker
================================

Tests for the feed lifecycle state machine and the completion counter.
"""

import pytest

from feedtape.models import FeedStatus
from feedtape.storage.feed_state_tracker import FeedStateTracker
from feedtape.utils.exceptions import ErrorCode, FeedStateError


@pytest.fixture
def tracker():
    tracker = FeedStateTracker()
    tracker.initialize(["a", "b"])
    return tracker


class TestFeedLifecycle:

    def test_initialize_seeds_idle_in_order(self, tracker):
        states = tracker.all()

        assert [state.feed_id for state in states] == ["a", "b"]
        assert all(state.status == FeedStatus.IDLE for state in states)

    def test_happy_path(self, tracker):
        tracker.start_fetching("a")
        state = tracker.start_processing("a", 2)

        assert state.status == FeedStatus.PROCESSING
        assert state.progress.total == 2
        assert state.progress.completed == 0

        state = tracker.record_completion("a")
        assert state.status == FeedStatus.PROCESSING
        assert state.progress.completed == 1

        state = tracker.record_completion("a")
        assert state.status == FeedStatus.PROCESSING
        assert state.progress.completed == state.progress.total == 2

        state = tracker.mark_ready("a")
        assert state.status == FeedStatus.READY
        assert state.progress is None

    def test_fetching_straight_to_ready_or_error(self, tracker):
        tracker.start_fetching("a")
        tracker.start_fetching("b")

        assert tracker.mark_ready("a").status == FeedStatus.READY
        failed = tracker.mark_error("b", "HTTP 500")
        assert failed.status == FeedStatus.ERROR
        assert failed.error == "HTTP 500"

    def test_idle_cannot_skip_fetching(self, tracker):
        with pytest.raises(FeedStateError):
            tracker.start_processing("a", 3)

    def test_terminal_states_are_final(self, tracker):
        tracker.start_fetching("a")
        tracker.mark_ready("a")

        with pytest.raises(FeedStateError):
            tracker.start_fetching("a")

    def test_completion_outside_processing_rejected(self, tracker):
        tracker.start_fetching("a")

        with pytest.raises(FeedStateError):
            tracker.record_completion("a")

    def test_unknown_feed(self, tracker):
        with pytest.raises(FeedStateError) as exc_info:
            tracker.start_fetching("missing")

        assert exc_info.value.error_code == ErrorCode.STATE_UNKNOWN_FEED

    def test_reset_from_any_state(self, tracker):
        tracker.start_fetching("a")
        tracker.mark_error("a", "boom")

        state = tracker.reset("a")
        assert state.status == FeedStatus.IDLE
        assert state.error is None
        assert tracker.start_fetching("a").status == FeedStatus.FETCHING

    def test_functional_update_is_atomic(self, tracker):
        tracker.start_fetching("a")
        tracker.start_processing("a", 100)

        for _ in range(99):
            tracker.record_completion("a")

        assert tracker.get("a").progress.completed == 99
        assert tracker.record_completion("a").progress.is_complete

        with pytest.raises(FeedStateError):
            tracker.record_completion("a")

    def test_clear(self, tracker):
        assert len(tracker) == 2

        tracker.clear()
        assert tracker.all() == []
