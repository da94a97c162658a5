"""Listing date/time parsing.

Listings print times in the venue's local zone, usually as
"15 Aug 2024, 07:30 PM". Known formats are tried first with strptime and keep
their literal components; anything else goes through dateutil's free-form
parser. A string that is missing a calendar date or a time of day is
ambiguous and rejected rather than guessed.
"""

from collections.abc import Sequence
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import parser as date_parser

DEFAULT_ZONE = "Asia/Kolkata"
DEFAULT_FORMATS: tuple[str, ...] = (
    "%d %b %Y, %I:%M %p",
    "%d %B %Y, %I:%M %p",
)

# Two defaults that differ in year, month, day and hour: a component missing
# from the input is filled from the default, so the two parses disagree on it.
# Minutes are shared, so "7 PM" means 19:00.
_PROBE_DEFAULTS = (
    datetime(2000, 1, 1, 0, 0),
    datetime(2004, 2, 2, 1, 0),
)


class DateNormalizer:
    """Resolve raw listing strings to timezone-aware datetimes in one zone."""

    def __init__(
        self,
        zone: str = DEFAULT_ZONE,
        format_hints: Sequence[str] = DEFAULT_FORMATS,
    ) -> None:
        try:
            self.zone = ZoneInfo(zone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone {zone!r}") from e
        self.zone_name = zone
        self.format_hints = tuple(format_hints)

    def parse(self, raw: object) -> datetime | None:
        """Return the resolved start, or None if ``raw`` cannot be resolved.

        Never raises for bad input; the caller drops the record instead.
        """
        if not isinstance(raw, str):
            return None
        text = " ".join(raw.split())
        if not text:
            return None

        for fmt in self.format_hints:
            try:
                parsed = datetime.strptime(text, fmt)
            except ValueError:
                continue
            return self._bind(parsed)

        return self._parse_free_form(text)

    def _parse_free_form(self, text: str) -> datetime | None:
        try:
            first, second = (
                date_parser.parse(text, default=default) for default in _PROBE_DEFAULTS
            )
        except (ValueError, OverflowError):
            return None

        if first != second:
            # Some component came from the default, not the input
            return None
        return self._bind(first)

    def _bind(self, parsed: datetime) -> datetime:
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(self.zone)
        else:
            parsed = parsed.replace(tzinfo=self.zone)
        return parsed.replace(second=0, microsecond=0)


def parse_datetime(
    raw: object,
    format_hints: Sequence[str] = DEFAULT_FORMATS,
    zone: str = DEFAULT_ZONE,
) -> datetime | None:
    """Functional form of ``DateNormalizer(zone, format_hints).parse(raw)``."""
    return DateNormalizer(zone, format_hints).parse(raw)
