"""Pydantic models for listing records and calendar events.

All data structures use Pydantic v2 for validation, serialization, and type safety.
Records flowing between pipeline stages are frozen: each stage builds new
collections instead of mutating the previous stage's output.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SourceChannel(str, Enum):
    """Where a raw record was read from."""

    DOM = "DOM"
    API = "API"


class RawRecord(BaseModel):
    """One candidate event as extracted, before any validation.

    Fields may be placeholders ("Unknown Title", "Venue TBA") or empty; the
    normalizer decides whether the record becomes an event.
    """

    model_config = ConfigDict(frozen=True)

    title: str = ""
    raw_date_time: str | None = None  # e.g. "15 Aug 2024, 07:30 PM"
    venue: str = ""
    link: str = ""  # absolute URL, also the deduplication key
    price: str | None = None  # e.g. "₹ 499" or "Price TBA"
    source_channel: SourceChannel = SourceChannel.DOM


class CanonicalEvent(BaseModel):
    """A validated, timezone-resolved event ready for calendar encoding."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    start: datetime
    duration_minutes: int = Field(default=120, gt=0)
    venue: str = ""
    source_url: str = ""
    description: str = ""

    @field_validator("start")
    @classmethod
    def _aware_minute_precision(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("start must carry an explicit timezone")
        return value.replace(second=0, microsecond=0)


class DropWarning(BaseModel):
    """A raw record that did not become an event, and why."""

    model_config = ConfigDict(frozen=True)

    record: RawRecord
    reason: str  # one of the DROP_* constants in screenfeed.normalizer


class PipelineResult(BaseModel):
    """Ordered events plus a warning for every record dropped along the way."""

    model_config = ConfigDict(frozen=True)

    events: tuple[CanonicalEvent, ...] = ()
    warnings: tuple[DropWarning, ...] = ()


class CapturedPayload(BaseModel):
    """A background JSON response captured while the page was loading."""

    model_config = ConfigDict(frozen=True)

    url: str
    body: Any = None


class StabilizationState(BaseModel):
    """Scratch state of one stabilization loop. Discarded when it finishes."""

    previous_signal: int = 0
    stall_count: int = 0
    cycles: int = 0


class EventDescriptor(BaseModel):
    """Encoder input for a single calendar event."""

    model_config = ConfigDict(frozen=True)

    title: str
    start: tuple[int, int, int, int, int]  # year, month, day, hour, minute
    timezone: str
    duration_minutes: int
    location: str = ""
    url: str = ""
    description: str = ""
    status: str | None = "CONFIRMED"
    busy_status: str | None = "BUSY"
    categories: tuple[str, ...] = ()
