"""
Feed Document Parser
===================

Turns raw syndication documents into ordered RawEntry lists using feedparser.

feedparser normalises RSS items and Atom entries into a single entry list, so
both formats go through the same extraction; the detected version only names
the format in logs. Entries without a link are skipped individually instead
of failing the whole document.
"""

import calendar
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Sequence, Set, Union

import feedparser

from ..config.settings import FeedTapeSettings, get_settings
from ..utils.exceptions import FeedParseError
from ..utils.logging import get_logger_for_component


@dataclass(frozen=True)
class RawEntry:
    """One entry as extracted from a feed document."""

    title: str
    link: str
    content: str
    published_at: Optional[datetime] = None
    author: Optional[str] = None


def _format_name(version: str) -> str:
    # feedparser reports "" for documents it only parsed loosely
    if version.startswith("atom"):
        return "atom"
    if version.startswith(("rss", "cdf")):
        return "rss"
    return "unversioned"


class FeedDocumentParser:
    """RSS/Atom parser producing a bounded, document-ordered entry list."""

    def __init__(self, max_entries: Optional[int] = None, settings: Optional[FeedTapeSettings] = None):
        settings = settings or get_settings()
        self.max_entries = max_entries or settings.pipeline.max_entries_per_feed
        self.logger = get_logger_for_component("feed_parser")

    def parse(
        self,
        content: Union[bytes, str],
        max_entries: Optional[int] = None,
        feed_url: Optional[str] = None,
    ) -> List[RawEntry]:
        """Parse a feed document.

        Args:
            content: Raw document bytes or text
            max_entries: Keep at most this many entries (default from config)
            feed_url: Source URL, used for log and error context only

        Returns:
            Entries in document order; may be empty

        Raises:
            FeedParseError: If the document is not recognisable as a feed
        """
        limit = max_entries or self.max_entries
        source = feed_url or "<document>"

        parsed = feedparser.parse(content)

        if parsed.bozo:
            if not parsed.entries and not parsed.get("version"):
                raise FeedParseError(
                    f"Feed parse error: {parsed.get('bozo_exception', 'invalid XML structure')}",
                    feed_url=feed_url,
                )
            # Many feeds have minor formatting issues
            self.logger.info(
                f"Feed has parse warnings but is usable: {source} ({parsed.get('bozo_exception')})"
            )

        raw_items: Sequence[Any] = parsed.entries
        format_name = _format_name(parsed.get("version", "") or "")
        self.logger.debug(f"Extracted {len(raw_items)} {format_name} entries from {source}")

        entries: List[RawEntry] = []
        seen_links: Set[str] = set()
        for position, item in enumerate(raw_items):
            if len(entries) >= limit:
                self.logger.debug(
                    f"Entry limit {limit} reached for {source}, dropping {len(raw_items) - position} more"
                )
                break
            try:
                entry = self._extract_entry(item)
            except ValueError as e:
                self.logger.warning(f"Skipping unparsable entry in {source}: {e}")
                continue
            if entry.link in seen_links:
                self.logger.warning(f"Skipping duplicate entry {entry.link} in {source}")
                continue
            seen_links.add(entry.link)
            entries.append(entry)

        self.logger.info(f"Parsed {len(entries)} entries from {source}")
        return entries

    def _extract_entry(self, item: Any) -> RawEntry:
        link = (item.get("link") or item.get("id") or "").strip()
        if not link:
            raise ValueError(f"entry '{item.get('title', 'Untitled')}' has no link")

        return RawEntry(
            title=(item.get("title") or "").strip(),
            link=link,
            content=self._extract_content(item),
            published_at=self._parse_date(item),
            author=self._extract_author(item),
        )

    @staticmethod
    def _extract_content(item: Any) -> str:
        # Full content (Atom <content>, RSS <content:encoded>) beats the summary
        contents = item.get("content")
        if isinstance(contents, list):
            for block in contents:
                value = block.get("value") if isinstance(block, dict) else None
                if value:
                    return value
        return item.get("summary") or item.get("description") or ""

    @staticmethod
    def _extract_author(item: Any) -> Optional[str]:
        author = item.get("author")
        if not author:
            detail = item.get("author_detail")
            if isinstance(detail, dict):
                author = detail.get("name")
        return author.strip() if author else None

    @staticmethod
    def _parse_date(item: Any) -> Optional[datetime]:
        for field in ("published_parsed", "updated_parsed", "created_parsed"):
            date_tuple = item.get(field)
            if date_tuple:
                try:
                    return datetime.fromtimestamp(calendar.timegm(date_tuple), tz=timezone.utc)
                except (ValueError, OverflowError, TypeError):
                    continue
        return None
