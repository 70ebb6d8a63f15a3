"""
FeedTape Services
================

Collaborators consumed by the pipeline: the feed directory and the read
status store.
"""

from .feed_directory import ApiFeedDirectory, FeedDirectory, StaticFeedDirectory
from .read_status import ReadStatusStore

__all__ = [
    'FeedDirectory',
    'StaticFeedDirectory',
    'ApiFeedDirectory',
    'ReadStatusStore',
]
