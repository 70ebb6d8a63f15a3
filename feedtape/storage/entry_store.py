"""
Entry Store
===========

Authoritative in-memory collection of every entry across all feeds, with a
link -> position index for constant-time replace-at-index updates.
"""

import threading
from collections import Counter
from typing import Dict, Iterable, List, Optional

from ..models import Entry, EntryStatus
from ..utils.logging import get_logger_for_component


class EntryStore:
    """Ordered entry collection keyed by entry link.

    Every mutation happens under one lock and replaces whole records, so a
    list returned by :meth:`get_by_feed` or :meth:`all` is a stable snapshot.
    """

    def __init__(self):
        self._entries: List[Entry] = []
        self._index: Dict[str, int] = {}
        self._lock = threading.RLock()
        self.logger = get_logger_for_component("entry_store")

    def add_entries(self, entries: Iterable[Entry]) -> List[Entry]:
        """Append entries and extend the index.

        Entries whose link is already stored are skipped.

        Args:
            entries: Entries to register, in the order they should be listed

        Returns:
            The entries that were actually added
        """
        added: List[Entry] = []
        with self._lock:
            for entry in entries:
                if entry.link in self._index:
                    self.logger.warning(
                        f"Skipping duplicate entry {entry.link} (feed {entry.feed_id})"
                    )
                    continue
                self._entries.append(entry)
                self._index[entry.link] = len(self._entries) - 1
                added.append(entry)

        self.logger.debug(f"Added {len(added)} entries, store size {len(self._entries)}")
        return added

    def update_entry(self, entry: Entry) -> bool:
        """Replace the stored entry that has the same link.

        The index is consulted first; when it misses or points at another
        record the collection is scanned and the index repaired.

        Returns:
            True if the entry was found and replaced, False otherwise
        """
        with self._lock:
            position = self._locate(entry.link)
            if position is None:
                self.logger.warning(f"update_entry called for unknown entry: {entry.link}")
                return False
            self._entries[position] = entry
            return True

    def get(self, link: str) -> Optional[Entry]:
        """Return the entry with ``link`` or None."""
        with self._lock:
            position = self._locate(link)
            return self._entries[position] if position is not None else None

    def get_by_feed(self, feed_id: str) -> List[Entry]:
        """Return all entries of a feed in collection order."""
        with self._lock:
            return [entry for entry in self._entries if entry.feed_id == feed_id]

    def all(self) -> List[Entry]:
        """Return a snapshot of every stored entry."""
        with self._lock:
            return list(self._entries)

    def remove_by_feed(self, feed_id: str) -> int:
        """Purge every entry of a feed and rebuild the index.

        Returns:
            Number of entries removed
        """
        with self._lock:
            remaining = [entry for entry in self._entries if entry.feed_id != feed_id]
            removed = len(self._entries) - len(remaining)
            self._entries = remaining
            self._rebuild_index()

        if removed:
            self.logger.info(f"Removed {removed} entries for feed {feed_id}")
        return removed

    def clear(self) -> None:
        """Empty the collection and the index."""
        with self._lock:
            self._entries = []
            self._index = {}
        self.logger.info("Entry store cleared")

    def count_by_status(self, feed_id: Optional[str] = None) -> Dict[EntryStatus, int]:
        """Count entries per status, optionally for one feed."""
        with self._lock:
            counts = Counter(
                entry.status
                for entry in self._entries
                if feed_id is None or entry.feed_id == feed_id
            )
        return {status: counts.get(status, 0) for status in EntryStatus}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, link: object) -> bool:
        if not isinstance(link, str):
            return False
        with self._lock:
            return self._locate(link) is not None

    def _locate(self, link: str) -> Optional[int]:
        position = self._index.get(link)
        if (
            position is not None
            and position < len(self._entries)
            and self._entries[position].link == link
        ):
            return position

        position = self._scan(link)
        if position is not None:
            self.logger.debug(f"Index miss for {link}, repaired from linear scan")
            self._index[link] = position
        else:
            self._index.pop(link, None)
        return position

    def _scan(self, link: str) -> Optional[int]:
        for position, entry in enumerate(self._entries):
            if entry.link == link:
                return position
        return None

    def _rebuild_index(self) -> None:
        self._index = {entry.link: position for position, entry in enumerate(self._entries)}
