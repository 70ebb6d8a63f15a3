"""
Read Status Store
================

Remembers which entries the listener already consumed. Consumed entry links
live in an in-memory set for constant-time lookups and are persisted with
their timestamps to a JSON file. Records older than 90 days are dropped by an
automatic cleanup that runs at most once a week.
"""

import json
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ..utils.logging import get_logger_for_component

CLEANUP_AGE_DAYS = 90
CLEANUP_INTERVAL_DAYS = 7


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ConsumedEntry(BaseModel):
    """One consumed entry record."""
    consumed_at: datetime = Field(default_factory=_now)
    feed_id: Optional[str] = None
    title: Optional[str] = None


class ReadStatusData(BaseModel):
    """On-disk layout of the read status file."""
    version: int = 1
    last_cleanup: Optional[datetime] = None
    entries: Dict[str, ConsumedEntry] = Field(default_factory=dict)


class ReadStatusStore:
    """JSON-backed consumed-entry registry."""

    def __init__(self, path: Union[str, Path], auto_cleanup: bool = True):
        self.path = Path(path)
        self.logger = get_logger_for_component("read_status")
        self._lock = threading.RLock()
        self._data = self._load()

        if auto_cleanup and self._cleanup_due():
            self.cleanup()

        self.logger.info(f"Read status loaded with {len(self._data.entries)} consumed entries")

    def is_consumed(self, entry_id: str) -> bool:
        with self._lock:
            return entry_id in self._data.entries

    def mark_consumed(
        self, entry_id: str, feed_id: Optional[str] = None, title: Optional[str] = None
    ) -> None:
        """Record ``entry_id`` as consumed and persist the change."""
        with self._lock:
            self._data.entries[entry_id] = ConsumedEntry(feed_id=feed_id, title=title)
            self._save()
        self.logger.debug(f"Marked as consumed: {title or entry_id}")

    def cleanup(self, max_age_days: int = CLEANUP_AGE_DAYS, now: Optional[datetime] = None) -> int:
        """Drop records older than ``max_age_days``.

        Returns:
            Number of records removed
        """
        now = now or _now()
        cutoff = now - timedelta(days=max_age_days)
        with self._lock:
            stale = [
                entry_id
                for entry_id, record in self._data.entries.items()
                if record.consumed_at < cutoff
            ]
            for entry_id in stale:
                del self._data.entries[entry_id]
            self._data.last_cleanup = now
            self._save()

        self.logger.info(f"Read status cleanup removed {len(stale)} entries")
        return len(stale)

    def clear_all(self) -> None:
        with self._lock:
            self._data = ReadStatusData(last_cleanup=_now())
            if self.path.exists():
                self.path.unlink()
        self.logger.info("Read status history cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._data.entries)

    def _cleanup_due(self) -> bool:
        last = self._data.last_cleanup
        return last is None or _now() - last >= timedelta(days=CLEANUP_INTERVAL_DAYS)

    def _load(self) -> ReadStatusData:
        if not self.path.exists():
            return ReadStatusData()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return ReadStatusData.model_validate(json.load(f))
        except (OSError, ValueError, ValidationError) as e:
            # A corrupt history only costs read markers, start empty
            self.logger.error(f"Failed to load read status from {self.path}: {e}")
            return ReadStatusData()

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(self._data.model_dump_json(indent=2))
        tmp_path.replace(self.path)
