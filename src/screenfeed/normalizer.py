"""Deduplication and normalization of raw records into calendar events."""

from collections.abc import Iterable

from screenfeed.dates import DateNormalizer
from screenfeed.logging import get_logger
from screenfeed.models import CanonicalEvent, DropWarning, PipelineResult, RawRecord

logger = get_logger(__name__)

DROP_UNPARSEABLE_DATE = "unparseable-date"
DROP_MISSING_TITLE = "missing-title"
DROP_MISSING_LINK = "missing-link"


def dedupe(records: Iterable[RawRecord]) -> list[RawRecord]:
    """Keep the first record per link, in order. Later duplicates vanish silently.

    Records without a link are passed through; the normalizer reports them.
    """
    seen: set[str] = set()
    unique: list[RawRecord] = []
    for record in records:
        if record.link:
            if record.link in seen:
                continue
            seen.add(record.link)
        unique.append(record)
    return unique


def describe(record: RawRecord, source_label: str) -> str:
    """Human-readable event description."""
    lines = [source_label, "", record.title, "", f"Venue: {record.venue}"]
    if record.raw_date_time:
        lines.append(f"Time: {record.raw_date_time}")
    if record.price:
        lines.append(f"Price: {record.price}")
    lines.append(f"Tickets: {record.link}")
    return "\n".join(lines)


class Normalizer:
    """Turn raw records into canonical events, reporting every drop."""

    def __init__(
        self,
        date_normalizer: DateNormalizer,
        default_duration_minutes: int = 120,
        source_label: str = "",
    ) -> None:
        self.date_normalizer = date_normalizer
        self.default_duration_minutes = default_duration_minutes
        self.source_label = source_label

    def normalize(self, records: Iterable[RawRecord]) -> PipelineResult:
        events: list[CanonicalEvent] = []
        warnings: list[DropWarning] = []

        for record in dedupe(records):
            reason = DROP_UNPARSEABLE_DATE
            start = None
            if not record.link:
                reason = DROP_MISSING_LINK
            elif not record.title.strip():
                reason = DROP_MISSING_TITLE
            else:
                start = self.date_normalizer.parse(record.raw_date_time)

            if start is None:
                warnings.append(DropWarning(record=record, reason=reason))
                logger.debug(
                    "record_dropped",
                    reason=reason,
                    title=record.title,
                    raw_date_time=record.raw_date_time,
                    link=record.link,
                )
                continue

            events.append(
                CanonicalEvent(
                    title=record.title.strip(),
                    start=start,
                    duration_minutes=self.default_duration_minutes,
                    venue=record.venue,
                    source_url=record.link,
                    description=describe(record, self.source_label),
                )
            )

        logger.info("records_normalized", events=len(events), dropped=len(warnings))
        return PipelineResult(events=tuple(events), warnings=tuple(warnings))
