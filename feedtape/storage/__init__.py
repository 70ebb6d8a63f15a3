"""
FeedTape Storage Layer
=====================

Shared mutable state of the pipeline:
- Entry store: every entry across all feeds, indexed by link
- Feed state tracker: one lifecycle record per feed
"""

from .entry_store import EntryStore
from .feed_state_tracker import FeedStateTracker

__all__ = [
    "EntryStore",
    "FeedStateTracker",
]
