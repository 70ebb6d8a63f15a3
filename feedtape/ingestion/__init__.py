"""
FeedTape Ingestion Module
========================

Feed document retrieval and content preparation components.

This module handles:
- Fetching syndication documents over HTTP
- RSS/Atom parsing into ordered raw entries
- Cleaning entry bodies into speech-ready text
"""

from .fetcher import DocumentFetcher
from .feed_parser import FeedDocumentParser, RawEntry
from .content_cleaner import ContentCleaner

__all__ = [
    'DocumentFetcher',
    'FeedDocumentParser',
    'RawEntry',
    'ContentCleaner',
]
