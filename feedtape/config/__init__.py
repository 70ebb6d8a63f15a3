"""FeedTape configuration."""

from .settings import FeedTapeSettings, get_settings, load_settings

__all__ = ["FeedTapeSettings", "get_settings", "load_settings"]
