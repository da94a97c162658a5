"""Calendar feed assembly.

FeedAssembler maps canonical events into encoder descriptors and hands them
to a CalendarEncoder. ICalendarEncoder is the RFC 5545 implementation on top
of the ``icalendar`` package. Nothing in this module touches the filesystem.
"""

import hashlib
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from icalendar import Calendar, Event
from pydantic import BaseModel, ConfigDict

from screenfeed.errors import EncodingError, EncodingFailed
from screenfeed.logging import get_logger
from screenfeed.models import CanonicalEvent, EventDescriptor, PipelineResult

logger = get_logger(__name__)

PRODID = "-//screenfeed//listings feed//EN"


class CalendarEncoder(Protocol):
    def encode(self, descriptors: Sequence[EventDescriptor]) -> bytes:
        """Serialize descriptors. Raises EncodingError on invalid input."""
        ...


class NoEventsResult(BaseModel):
    """Nothing to publish. Not an error."""

    model_config = ConfigDict(frozen=True)

    dropped: int = 0


class EncodedFeed(BaseModel):
    model_config = ConfigDict(frozen=True)

    payload: bytes
    event_count: int


def _zone_name(event: CanonicalEvent) -> str:
    tz = event.start.tzinfo
    if isinstance(tz, ZoneInfo):
        return tz.key
    return "UTC"


def to_descriptors(
    events: Iterable[CanonicalEvent],
    *,
    status: str | None = "CONFIRMED",
    busy_status: str | None = "BUSY",
    categories: Sequence[str] = (),
) -> list[EventDescriptor]:
    descriptors = []
    for event in events:
        start = event.start
        if not isinstance(start.tzinfo, ZoneInfo):
            start = start.astimezone(timezone.utc)
        descriptors.append(
            EventDescriptor(
                title=event.title,
                start=(start.year, start.month, start.day, start.hour, start.minute),
                timezone=_zone_name(event),
                duration_minutes=event.duration_minutes,
                location=event.venue,
                url=event.source_url,
                description=event.description,
                status=status,
                busy_status=busy_status,
                categories=tuple(categories),
            )
        )
    return descriptors


class ICalendarEncoder:
    """Serialize descriptors to an iCalendar (.ics) payload.

    UIDs are derived from the event URL and start, so re-running against
    the same listings yields the same UIDs and calendar clients update events
    in place instead of duplicating them.
    """

    def __init__(
        self,
        calendar_name: str = "Listings",
        prodid: str = PRODID,
        stamp: datetime | None = None,
    ) -> None:
        self.calendar_name = calendar_name
        self.prodid = prodid
        self.stamp = stamp

    def encode(self, descriptors: Sequence[EventDescriptor]) -> bytes:
        stamp = self.stamp or datetime.now(timezone.utc)
        try:
            cal = Calendar()
            cal.add("prodid", self.prodid)
            cal.add("version", "2.0")
            cal.add("calscale", "GREGORIAN")
            cal.add("method", "PUBLISH")
            cal.add("x-wr-calname", self.calendar_name)

            for descriptor in descriptors:
                cal.add_component(self._event(descriptor, stamp))

            # Every TZID referenced by a DTSTART needs its VTIMEZONE
            cal.add_missing_timezones()
            return cal.to_ical()
        except (ValueError, TypeError, ZoneInfoNotFoundError) as e:
            raise EncodingError(str(e)) from e

    def _event(self, d: EventDescriptor, stamp: datetime) -> Event:
        start = datetime(*d.start, tzinfo=ZoneInfo(d.timezone))
        if d.duration_minutes <= 0:
            raise ValueError(f"Non-positive duration for {d.title!r}")

        ev = Event()
        ev.add("uid", self.uid(d))
        ev.add("dtstamp", stamp)
        ev.add("dtstart", start)
        ev.add("duration", timedelta(minutes=d.duration_minutes))
        ev.add("summary", d.title)
        if d.location:
            ev.add("location", d.location)
        if d.url:
            ev.add("url", d.url)
        if d.description:
            ev.add("description", d.description)
        if d.status:
            ev.add("status", d.status)
        if d.busy_status:
            ev.add("transp", "OPAQUE" if d.busy_status.upper() == "BUSY" else "TRANSPARENT")
        if d.categories:
            ev.add("categories", list(d.categories))
        return ev

    @staticmethod
    def uid(d: EventDescriptor) -> str:
        key = f"{d.url}|{'-'.join(str(part) for part in d.start)}"
        return hashlib.sha1(key.encode("utf-8")).hexdigest()[:20] + "@screenfeed"


class FeedAssembler:
    """Turn a PipelineResult into a serialized feed."""

    def __init__(
        self,
        encoder: CalendarEncoder,
        *,
        status: str | None = "CONFIRMED",
        busy_status: str | None = "BUSY",
        categories: Sequence[str] = (),
    ) -> None:
        self.encoder = encoder
        self.status = status
        self.busy_status = busy_status
        self.categories = tuple(categories)

    def assemble(self, result: PipelineResult) -> NoEventsResult | EncodedFeed:
        """Encode ``result.events``.

        Returns NoEventsResult without calling the encoder when there are no
        events.

        Raises:
            EncodingFailed: If the encoder rejects the descriptors. Not retried.
        """
        if not result.events:
            logger.info("feed_empty", dropped=len(result.warnings))
            return NoEventsResult(dropped=len(result.warnings))

        descriptors = to_descriptors(
            result.events,
            status=self.status,
            busy_status=self.busy_status,
            categories=self.categories,
        )
        try:
            payload = self.encoder.encode(descriptors)
        except EncodingError as e:
            logger.error("feed_encoding_failed", error=str(e))
            raise EncodingFailed(str(e)) from e

        logger.info("feed_assembled", events=len(descriptors), bytes=len(payload))
        return EncodedFeed(payload=payload, event_count=len(descriptors))
