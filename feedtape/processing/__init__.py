"""
FeedTape Processing Module
=========================

Concurrent pipeline components: bounded worker pools, the per-feed entry
processor and the session-level content pipeline.
"""

from .worker_pool import BoundedWorkerPool, PoolStats
from .entry_processor import EntryProcessor
from .pipeline import ContentPipeline

__all__ = [
    'BoundedWorkerPool',
    'PoolStats',
    'EntryProcessor',
    'ContentPipeline',
]
