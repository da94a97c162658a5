"""Dual-channel extraction: rendered DOM first, captured API payloads as backup.

DOM records reflect what a visitor actually sees and are authoritative. API
payloads are only merged in when the page rendered too few cards.
"""

from collections.abc import Iterable
from typing import Any
from urllib.parse import urljoin

from pydantic import BaseModel, ConfigDict

from screenfeed.logging import get_logger
from screenfeed.models import CapturedPayload, RawRecord, SourceChannel
from screenfeed.normalizer import dedupe
from screenfeed.pages.listings import ListingsPage
from screenfeed.session import PageSession
from screenfeed.strategies import PRICE_PLACEHOLDER, TITLE_PLACEHOLDER, VENUE_PLACEHOLDER

logger = get_logger(__name__)


class ExtractionResult(BaseModel):
    """Deduplicated records plus how each channel contributed."""

    model_config = ConfigDict(frozen=True)

    records: tuple[RawRecord, ...] = ()
    dom_count: int = 0
    api_count: int = 0
    payload_count: int = 0
    used_api_fallback: bool = False


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def records_from_payloads(
    payloads: Iterable[CapturedPayload], site_origin: str
) -> list[RawRecord]:
    """Map captured ``{"data": {"events": [...]}}`` payloads to RawRecords.

    Known fields: ``name``, ``venue.name``, ``showDate``, ``priceRange``, ``url``.
    Payloads of any other shape are skipped.
    """
    records: list[RawRecord] = []
    for payload in payloads:
        body = payload.body
        data = body.get("data") if isinstance(body, dict) else None
        events = data.get("events") if isinstance(data, dict) else None
        if not isinstance(events, list):
            logger.debug("api_payload_unrecognized", url=payload.url)
            continue

        for event in events:
            if not isinstance(event, dict):
                continue
            venue = event.get("venue")
            venue_name = venue.get("name") if isinstance(venue, dict) else None
            url = _str_or_none(event.get("url"))
            records.append(
                RawRecord(
                    title=_str_or_none(event.get("name")) or TITLE_PLACEHOLDER,
                    raw_date_time=_str_or_none(event.get("showDate")),
                    venue=_str_or_none(venue_name) or VENUE_PLACEHOLDER,
                    price=_str_or_none(event.get("priceRange")) or PRICE_PLACEHOLDER,
                    link=urljoin(site_origin, url) if url else "",
                    source_channel=SourceChannel.API,
                )
            )
    return records


def arbitrate(
    dom_records: Iterable[RawRecord],
    api_records: Iterable[RawRecord],
    *,
    threshold: int,
    payload_count: int,
) -> ExtractionResult:
    """Combine both channels.

    API records are appended after the DOM records only when fewer than
    ``threshold`` unique, linked DOM records exist and at least one payload was
    captured. Link-less records are kept for the normalizer to report but do
    not count toward the threshold.
    """
    dom_unique = dedupe(dom_records)
    dom_count = sum(1 for record in dom_unique if record.link)
    api_list = list(api_records)

    if dom_count >= threshold or payload_count == 0:
        return ExtractionResult(
            records=tuple(dom_unique),
            dom_count=dom_count,
            api_count=len(api_list),
            payload_count=payload_count,
        )

    merged = dedupe([*dom_unique, *api_list])
    logger.info(
        "api_fallback_used",
        dom_count=dom_count,
        api_count=len(api_list),
        merged_count=len(merged),
        threshold=threshold,
    )
    return ExtractionResult(
        records=tuple(merged),
        dom_count=dom_count,
        api_count=len(api_list),
        payload_count=payload_count,
        used_api_fallback=True,
    )


class DualChannelExtractor:
    """Read both channels from a stabilized session and arbitrate."""

    def __init__(self, page: ListingsPage, site_origin: str, threshold: int = 50) -> None:
        self.page = page
        self.site_origin = site_origin
        self.threshold = threshold

    async def extract(self, session: PageSession) -> ExtractionResult:
        dom_records = await self.page.extract_dom_records()
        payloads = await session.drain_payloads()
        api_records = records_from_payloads(payloads, self.site_origin)

        result = arbitrate(
            dom_records,
            api_records,
            threshold=self.threshold,
            payload_count=len(payloads),
        )
        logger.info(
            "extraction_complete",
            records=len(result.records),
            dom_count=result.dom_count,
            payloads=result.payload_count,
            api_fallback=result.used_api_fallback,
        )
        return result
