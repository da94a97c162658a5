import pytest

from conftest import FakePageSession, anchor, api_payload
from screenfeed.extractor import DualChannelExtractor, arbitrate, records_from_payloads
from screenfeed.models import CapturedPayload, RawRecord, SourceChannel
from screenfeed.pages.listings import ListingsPage
from screenfeed.strategies import (
    DateTimeStrategy,
    FieldStrategies,
    PriceStrategy,
    VenueStrategy,
)

ORIGIN = "https://in.bookmyshow.com"
CARD_TEXT = "Hamlet\n15 Aug 2024, 07:30 PM\nKamani Auditorium, Mandi House\n₹ 499 onwards"


def dom(n, prefix="dom"):
    return [
        RawRecord(title=f"{prefix} {i}", link=f"{ORIGIN}/events/{prefix}-{i}")
        for i in range(n)
    ]


def api(n, prefix="api"):
    return [
        RawRecord(
            title=f"{prefix} {i}",
            link=f"{ORIGIN}/events/{prefix}-{i}",
            source_channel=SourceChannel.API,
        )
        for i in range(n)
    ]


class TestStrategies:
    def test_date_prefers_full_pattern(self):
        assert DateTimeStrategy().extract(CARD_TEXT) == "15 Aug 2024, 07:30 PM"

    def test_date_falls_back_to_bare_time(self):
        assert DateTimeStrategy().extract("Open mic\nDoors 7:30 pm") == "7:30 pm"

    def test_date_missing(self):
        assert DateTimeStrategy().extract("Coming soon") is None

    def test_price(self):
        assert PriceStrategy().extract(CARD_TEXT) == "₹ 499"
        assert PriceStrategy().extract("From ₹1,299") == "₹1,299"
        assert PriceStrategy().extract("Free entry") == "Price TBA"

    def test_price_symbol_is_configurable(self):
        assert PriceStrategy("$").extract("Tickets $25.50") == "$25.50"
        assert PriceStrategy("$").extract(CARD_TEXT) == "Price TBA"

    def test_venue(self):
        assert VenueStrategy().extract(CARD_TEXT) == "Kamani Auditorium"
        assert VenueStrategy().extract("Play\nIndia Habitat Centre\n") == "India Habitat Centre"
        assert VenueStrategy().extract("Rooftop, Hauz Khas") == "Venue TBA"

    def test_venue_needs_whole_word(self):
        assert VenueStrategy().extract("Hallmark cards") == "Venue TBA"


class TestListingsPage:
    def page(self, session=None, **kwargs):
        return ListingsPage(session or FakePageSession(), ORIGIN, **kwargs)

    def test_title_resolution_order(self):
        records = self.page().records_from_anchors(
            [
                anchor("/events/a", heading="Hamlet", fallback="ignored", text=CARD_TEXT),
                anchor("/events/b", fallback="Macbeth", text="Macbeth\nsomething"),
                anchor("/events/c", text="no structure"),
            ]
        )

        assert [r.title for r in records] == ["Hamlet", "Macbeth", "Unknown Title"]

    def test_fields_and_link_resolution(self):
        (record,) = self.page().records_from_anchors(
            [anchor("/events/hamlet/ET001", heading="Hamlet", text=CARD_TEXT)]
        )

        assert record.link == f"{ORIGIN}/events/hamlet/ET001"
        assert record.raw_date_time == "15 Aug 2024, 07:30 PM"
        assert record.venue == "Kamani Auditorium"
        assert record.price == "₹ 499"
        assert record.source_channel is SourceChannel.DOM

    def test_placeholders_for_bare_anchor(self):
        (record,) = self.page().records_from_anchors([anchor("")])

        assert record.title == "Unknown Title"
        assert record.link == ""
        assert record.raw_date_time is None
        assert record.venue == "Venue TBA"
        assert record.price == "Price TBA"

    def test_absolute_href_kept(self):
        (record,) = self.page().records_from_anchors(
            [anchor("https://other.example/events/1", heading="X")]
        )
        assert record.link == "https://other.example/events/1"

    def test_custom_strategies(self):
        page = self.page(strategies=FieldStrategies.for_currency("€"))
        (record,) = page.records_from_anchors(
            [anchor("/events/x", heading="X", text="Tickets €12")]
        )
        assert record.price == "€12"

    def test_cards_use_their_own_fields_first(self):
        records = self.page().records_from_cards(
            [
                {
                    "href": "/film/1",
                    "heading": "Pather Panchali",
                    "date": "12 Sep 2024, 06:00 PM",
                    "venue": "Alliance Française",
                    "text": "Pather Panchali\nIndia Habitat Centre",
                },
                {"href": "/film/2", "heading": "", "text": CARD_TEXT},
            ]
        )

        assert records[0].raw_date_time == "12 Sep 2024, 06:00 PM"
        assert records[0].venue == "Alliance Française"
        assert records[1].title == "Unknown Title"
        assert records[1].raw_date_time == "15 Aug 2024, 07:30 PM"
        assert records[1].venue == "Kamani Auditorium"

    @pytest.mark.asyncio
    async def test_extract_dom_records_puts_cards_first(self):
        session = FakePageSession(
            anchors=[anchor("/events/a", heading="Anchor")],
            cards=[{"href": "/film/1", "heading": "Card", "text": ""}],
        )
        page = self.page(session, card_selector=".event-card")

        records = await page.extract_dom_records()

        assert [r.title for r in records] == ["Card", "Anchor"]

    @pytest.mark.asyncio
    async def test_extract_dom_records_skips_cards_when_unconfigured(self):
        session = FakePageSession(
            anchors=[anchor("/events/a", heading="Anchor")],
            cards=[{"href": "/film/1", "heading": "Card", "text": ""}],
        )

        records = await self.page(session).extract_dom_records()

        assert [r.title for r in records] == ["Anchor"]


class TestApiChannel:
    def test_maps_known_fields(self):
        payload = api_payload(
            [
                {
                    "name": "Tughlaq",
                    "venue": {"name": "Shri Ram Centre"},
                    "showDate": "2024-08-20T19:00:00+05:30",
                    "priceRange": "₹300 - ₹800",
                    "url": "/events/tughlaq/ET002",
                }
            ]
        )

        (record,) = records_from_payloads([payload], ORIGIN)

        assert record == RawRecord(
            title="Tughlaq",
            raw_date_time="2024-08-20T19:00:00+05:30",
            venue="Shri Ram Centre",
            price="₹300 - ₹800",
            link=f"{ORIGIN}/events/tughlaq/ET002",
            source_channel=SourceChannel.API,
        )

    def test_missing_fields_get_placeholders(self):
        (record,) = records_from_payloads([api_payload([{"url": "/events/x"}])], ORIGIN)

        assert record.title == "Unknown Title"
        assert record.venue == "Venue TBA"
        assert record.price == "Price TBA"
        assert record.raw_date_time is None

    def test_unrecognized_payloads_are_skipped(self):
        payloads = [
            CapturedPayload(url=f"{ORIGIN}/api/a", body={"status": "ok"}),
            CapturedPayload(url=f"{ORIGIN}/api/b", body=[1, 2, 3]),
            CapturedPayload(url=f"{ORIGIN}/api/c", body={"data": {"events": "none"}}),
            api_payload(["not an event", {"name": "Real", "url": "/events/r"}]),
        ]

        records = records_from_payloads(payloads, ORIGIN)

        assert [r.title for r in records] == ["Real"]


class TestArbitration:
    def test_small_dom_set_merges_api_records(self):
        result = arbitrate(dom(10), api(80), threshold=50, payload_count=1)

        assert result.used_api_fallback
        assert len(result.records) == 90
        assert [r.source_channel for r in result.records[:10]] == [SourceChannel.DOM] * 10
        assert result.dom_count == 10

    def test_merge_dedupes_by_link_keeping_dom_version(self):
        overlap = [
            RawRecord(title="api copy", link=r.link, source_channel=SourceChannel.API)
            for r in dom(5)
        ]

        result = arbitrate(dom(10), overlap + api(80), threshold=50, payload_count=2)

        assert len(result.records) == 90
        assert result.records[0].title == "dom 0"
        assert all(r.title != "api copy" for r in result.records)

    def test_dom_is_authoritative_above_threshold(self):
        result = arbitrate(dom(60), api(80), threshold=50, payload_count=1)

        assert not result.used_api_fallback
        assert len(result.records) == 60

    def test_dom_count_is_measured_after_dedupe(self):
        duplicated = dom(30) + dom(30)

        result = arbitrate(duplicated, api(5), threshold=50, payload_count=1)

        assert result.dom_count == 30
        assert result.used_api_fallback
        assert len(result.records) == 35

    def test_linkless_records_do_not_count_toward_threshold(self):
        linkless = [RawRecord(title=f"card {i}", link="") for i in range(60)]

        result = arbitrate(linkless + dom(5), api(20), threshold=50, payload_count=1)

        assert result.dom_count == 5
        assert result.used_api_fallback
        assert len(result.records) == 85

    def test_no_payloads_means_no_fallback(self):
        result = arbitrate(dom(3), [], threshold=50, payload_count=0)

        assert not result.used_api_fallback
        assert len(result.records) == 3

    @pytest.mark.asyncio
    async def test_extractor_drains_session_payloads(self):
        events = [{"name": f"E{i}", "url": f"/events/e{i}"} for i in range(4)]
        session = FakePageSession(
            anchors=[anchor("/events/a", heading="A")],
            payloads=[api_payload(events)],
        )
        session.capture_responses(lambda url: "/api/" in url)
        extractor = DualChannelExtractor(ListingsPage(session, ORIGIN), ORIGIN, threshold=50)

        result = await extractor.extract(session)

        assert [r.title for r in result.records] == ["A", "E0", "E1", "E2", "E3"]
        assert result.payload_count == 1
        assert await session.drain_payloads() == []
