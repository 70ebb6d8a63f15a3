"""
FeedTape Data Models
===================

Pydantic models shared by the pipeline, the storage layer and the
presentation layer. Models are frozen: every change produces a new record
via ``model_copy`` so consumers holding a snapshot never see it mutate.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EntryStatus(str, Enum):
    """Processing status of a single entry."""
    RAW = "raw"
    CLEANING = "cleaning"
    CLEANED = "cleaned"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (EntryStatus.CLEANED, EntryStatus.ERROR)


class FeedStatus(str, Enum):
    """Lifecycle phase of one feed's processing run."""
    IDLE = "idle"
    FETCHING = "fetching"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (FeedStatus.READY, FeedStatus.ERROR)


# Forward-only entry transitions; retry recreates entries instead of rewinding them
ENTRY_TRANSITIONS = {
    EntryStatus.RAW: {EntryStatus.CLEANING, EntryStatus.ERROR},
    EntryStatus.CLEANING: {EntryStatus.CLEANED, EntryStatus.ERROR},
    EntryStatus.CLEANED: set(),
    EntryStatus.ERROR: set(),
}


class Feed(BaseModel):
    """Subscribed feed as listed by the feed directory."""
    id: str = Field(..., min_length=1, description="Feed identifier")
    url: str = Field(..., min_length=1, description="Syndication document URL")
    title: str = Field(default="", description="Display title")

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"Feed({self.id}:{self.url})"


class Entry(BaseModel):
    """Pipeline-owned entry with its cleaning status."""
    link: str = Field(..., min_length=1, description="Entry link, unique across the store")
    feed_id: str = Field(..., min_length=1, description="Owning feed identifier")
    title: str = Field(default="", description="Entry title")
    published_at: Optional[datetime] = Field(default=None, description="Publication time (UTC)")
    author: Optional[str] = Field(default=None, description="Entry author")
    raw_content: str = Field(default="", description="Raw HTML body from the feed document")
    cleaned_content: Optional[str] = Field(default=None, description="Speech-ready text")
    status: EntryStatus = Field(default=EntryStatus.RAW)
    error: Optional[str] = Field(default=None, description="Reason for the error status")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_status_fields(self):
        """Cleaned body exists exactly when the entry is cleaned."""
        if (self.status == EntryStatus.CLEANED) != (self.cleaned_content is not None):
            raise ValueError("cleaned_content must be set if and only if status is 'cleaned'")
        if self.error is not None and self.status != EntryStatus.ERROR:
            raise ValueError("error may only be set when status is 'error'")
        return self

    def transition(self, status: EntryStatus, **changes) -> "Entry":
        """Return a copy moved to ``status``.

        Raises:
            ValueError: If the move is not forward along raw -> cleaning -> cleaned | error
        """
        if status not in ENTRY_TRANSITIONS[self.status]:
            raise ValueError(f"Illegal entry transition {self.status.value} -> {status.value}")
        # model_copy skips validation, so rebuild to re-check the invariants
        return Entry.model_validate({**self.model_dump(), **changes, "status": status})

    def __str__(self) -> str:
        return f"Entry({self.link} [{self.status.value}])"


class FeedProgress(BaseModel):
    """Completion counter for a feed in the processing phase."""
    total: int = Field(..., ge=0)
    completed: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_counts(self):
        if self.completed > self.total:
            raise ValueError("completed cannot exceed total")
        return self

    @property
    def is_complete(self) -> bool:
        return self.completed >= self.total


class FeedState(BaseModel):
    """Lifecycle record for one feed's processing run."""
    feed_id: str = Field(..., min_length=1)
    status: FeedStatus = Field(default=FeedStatus.IDLE)
    progress: Optional[FeedProgress] = Field(default=None)
    error: Optional[str] = Field(default=None)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_status_fields(self):
        """Progress only while processing, error only while in error."""
        if self.progress is not None and self.status != FeedStatus.PROCESSING:
            raise ValueError("progress is only valid while status is 'processing'")
        if self.status == FeedStatus.PROCESSING and self.progress is None:
            raise ValueError("processing state requires progress")
        if self.error is not None and self.status != FeedStatus.ERROR:
            raise ValueError("error is only valid while status is 'error'")
        return self

    def __str__(self) -> str:
        if self.progress:
            return f"FeedState({self.feed_id}: {self.status.value} {self.progress.completed}/{self.progress.total})"
        return f"FeedState({self.feed_id}: {self.status.value})"
