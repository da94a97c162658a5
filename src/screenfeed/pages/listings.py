"""ListingsPage - extracts event cards from a rendered listings page.

The page is read with one in-page script per channel that returns plain
strings; all pattern matching happens in Python on that snapshot, so the
same parsing runs against recorded fixtures in tests.

DOM structure (BookMyShow explore pages):
  a[href*='/events/']            -> one anchor per event card
    h3                           -> event title (not always present)
    div                          -> first line is the title when h3 is missing
    innerText                    -> "Title\\n15 Aug 2024, 07:30 PM\\nKamani Auditorium\\n₹ 499"

Card layout (Fillum-style pages, enabled via card_selector):
  .event-card
    h3 / .event-date / .event-venue / a[href]
"""

from typing import Any
from urllib.parse import urljoin

from screenfeed.logging import get_logger
from screenfeed.models import RawRecord, SourceChannel
from screenfeed.session import PageSession
from screenfeed.strategies import TITLE_PLACEHOLDER, FieldStrategies

log = get_logger(__name__)

ANCHOR_SNAPSHOT_JS = """(selector) => Array.from(document.querySelectorAll(selector)).map(a => ({
    href: a.getAttribute("href") || "",
    heading: (a.querySelector("h3")?.innerText || "").trim(),
    fallback: ((a.querySelector("div")?.innerText || "").split("\\n")[0] || "").trim(),
    text: a.innerText || "",
}))"""

CARD_SNAPSHOT_JS = """(sel) => Array.from(document.querySelectorAll(sel.card)).map(card => ({
    href: card.querySelector("a")?.getAttribute("href") || "",
    heading: (card.querySelector(sel.title)?.innerText || "").trim(),
    date: (card.querySelector(sel.date)?.innerText || "").trim(),
    venue: (card.querySelector(sel.venue)?.innerText || "").trim(),
    text: card.innerText || "",
}))"""


def _text(item: dict[str, Any], key: str) -> str:
    value = item.get(key)
    return value.strip() if isinstance(value, str) else ""


class ListingsPage:
    """Rendered listings page. Produces DOM-channel RawRecords."""

    def __init__(
        self,
        session: PageSession,
        site_origin: str,
        *,
        link_selector: str = "a[href*='/events/']",
        card_selector: str = "",
        card_title_selector: str = "h3",
        card_date_selector: str = ".event-date",
        card_venue_selector: str = ".event-venue",
        strategies: FieldStrategies | None = None,
    ) -> None:
        self.session = session
        self.site_origin = site_origin
        self.link_selector = link_selector
        self.card_selector = card_selector
        self.card_selectors = {
            "card": card_selector,
            "title": card_title_selector,
            "date": card_date_selector,
            "venue": card_venue_selector,
        }
        self.strategies = strategies or FieldStrategies()

    async def extract_dom_records(self) -> list[RawRecord]:
        """Snapshot cards and anchors and turn them into records.

        Card records (when a card selector is configured) come first.
        """
        records: list[RawRecord] = []

        if self.card_selector:
            cards = await self.session.evaluate(CARD_SNAPSHOT_JS, self.card_selectors)
            records.extend(self.records_from_cards(cards or []))

        anchors = await self.session.evaluate(ANCHOR_SNAPSHOT_JS, self.link_selector)
        records.extend(self.records_from_anchors(anchors or []))

        log.info("dom_records_extracted", count=len(records))
        return records

    def records_from_anchors(self, anchors: list[dict[str, Any]]) -> list[RawRecord]:
        records = []
        for item in anchors:
            if not isinstance(item, dict):
                continue
            text = item.get("text") if isinstance(item.get("text"), str) else ""
            title = _text(item, "heading") or _text(item, "fallback")
            if not title:
                log.debug("title_placeholder_used", href=item.get("href"))
                title = TITLE_PLACEHOLDER
            records.append(
                RawRecord(
                    title=title,
                    raw_date_time=self.strategies.date_time.extract(text),
                    venue=self.strategies.venue.extract(text) or "",
                    price=self.strategies.price.extract(text),
                    link=self.resolve_link(_text(item, "href")),
                    source_channel=SourceChannel.DOM,
                )
            )
        return records

    def records_from_cards(self, cards: list[dict[str, Any]]) -> list[RawRecord]:
        records = []
        for item in cards:
            if not isinstance(item, dict):
                continue
            text = item.get("text") if isinstance(item.get("text"), str) else ""
            title = _text(item, "heading") or TITLE_PLACEHOLDER
            records.append(
                RawRecord(
                    title=title,
                    raw_date_time=_text(item, "date")
                    or self.strategies.date_time.extract(text),
                    venue=_text(item, "venue")
                    or self.strategies.venue.extract(text)
                    or "",
                    price=self.strategies.price.extract(text),
                    link=self.resolve_link(_text(item, "href")),
                    source_channel=SourceChannel.DOM,
                )
            )
        return records

    def resolve_link(self, href: str) -> str:
        """Absolute URL for ``href``; empty when the card had no link."""
        if not href:
            return ""
        return urljoin(self.site_origin, href)
