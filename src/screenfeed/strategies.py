"""Field extraction strategies for free-text event cards.

Each strategy pulls one field out of a card's inner text. They are plain
objects with an ``extract(text)`` method so a different site can swap in its
own patterns without touching the extractor.
"""

import re
from typing import Protocol

DATE_PLACEHOLDER = None
PRICE_PLACEHOLDER = "Price TBA"
VENUE_PLACEHOLDER = "Venue TBA"
TITLE_PLACEHOLDER = "Unknown Title"


class FieldStrategy(Protocol):
    def extract(self, text: str) -> str | None:
        ...


class DateTimeStrategy:
    """Date and time of a card: "15 Aug 2024, 07:30 PM" or just "07:30 PM".

    The full day-month-time pattern wins over the bare time.
    """

    FULL = re.compile(r"\d{1,2}\s\w+.*?\d{1,2}:\d{2}\s?(?:AM|PM)", re.IGNORECASE)
    TIME_ONLY = re.compile(r"\d{1,2}:\d{2}\s?(?:AM|PM)", re.IGNORECASE)

    def extract(self, text: str) -> str | None:
        for pattern in (self.FULL, self.TIME_ONLY):
            match = pattern.search(text)
            if match:
                return match.group(0)
        return DATE_PLACEHOLDER


class PriceStrategy:
    """Currency-prefixed amount, e.g. "₹ 499"."""

    def __init__(self, currency_symbol: str = "₹", placeholder: str = PRICE_PLACEHOLDER):
        self.pattern = re.compile(re.escape(currency_symbol) + r"\s?\d[\d,]*(?:\.\d+)?")
        self.placeholder = placeholder

    def extract(self, text: str) -> str | None:
        match = self.pattern.search(text)
        return match.group(0) if match else self.placeholder


class VenueStrategy:
    """Venue name anchored on a venue-type noun, up to the next comma or line."""

    KEYWORDS = ("Auditorium", "Theatre", "Theater", "Hall", "Center", "Centre")

    def __init__(
        self, keywords: tuple[str, ...] = KEYWORDS, placeholder: str = VENUE_PLACEHOLDER
    ):
        alternation = "|".join(re.escape(k) for k in keywords)
        # Words before the keyword belong to the name ("Kamani Auditorium")
        self.pattern = re.compile(
            rf"[^,\n]*?\b(?:{alternation})\b[^,\n]*", re.IGNORECASE
        )
        self.placeholder = placeholder

    def extract(self, text: str) -> str | None:
        match = self.pattern.search(text)
        if not match:
            return self.placeholder
        return match.group(0).strip() or self.placeholder


class FieldStrategies:
    """The set of strategies one extractor uses."""

    def __init__(
        self,
        date_time: FieldStrategy | None = None,
        price: FieldStrategy | None = None,
        venue: FieldStrategy | None = None,
    ) -> None:
        self.date_time = date_time or DateTimeStrategy()
        self.price = price or PriceStrategy()
        self.venue = venue or VenueStrategy()

    @classmethod
    def for_currency(cls, currency_symbol: str) -> "FieldStrategies":
        return cls(price=PriceStrategy(currency_symbol))
