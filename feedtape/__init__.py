"""
FeedTape - Feed Content Pipeline
================================

Fetches a listener's RSS/Atom feeds, extracts entries and turns each entry
body into speech-ready text, concurrently and with observable progress.

Main Components:
- Ingestion: document fetcher, RSS/Atom parser, speech-oriented content cleaner
- Storage: indexed entry store and per-feed state tracker
- Processing: bounded worker pools and the session content pipeline
- Services: feed directory and read status collaborators
"""

__version__ = "1.0.0"
__author__ = "FeedTape Development Team"
__description__ = "Feed ingestion and speech content pipeline"

# Core imports for easy access
from .config.settings import get_settings
from .processing.pipeline import ContentPipeline
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FeedTapeError

__all__ = [
    "get_settings",
    "ContentPipeline",
    "configure_application_logging",
    "get_logger_for_component",
    "FeedTapeError",
]
