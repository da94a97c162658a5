from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from screenfeed.dates import DateNormalizer
from screenfeed.models import RawRecord, SourceChannel
from screenfeed.normalizer import (
    DROP_MISSING_LINK,
    DROP_MISSING_TITLE,
    DROP_UNPARSEABLE_DATE,
    Normalizer,
    dedupe,
)

IST = ZoneInfo("Asia/Kolkata")


@pytest.fixture
def normalizer():
    return Normalizer(
        DateNormalizer("Asia/Kolkata"),
        default_duration_minutes=120,
        source_label="BookMyShow",
    )


def record(link="https://x/e/1", title="Hamlet", when="15 Aug 2024, 07:30 PM", **kw):
    return RawRecord(title=title, raw_date_time=when, link=link, **kw)


def test_first_seen_record_wins(normalizer):
    records = [
        record(title="Hamlet", venue="Kamani Auditorium"),
        record(title="Hamlet (matinee)", venue="Shri Ram Centre"),
    ]

    result = normalizer.normalize(records)

    assert len(result.events) == 1
    assert result.events[0].title == "Hamlet"
    assert result.events[0].venue == "Kamani Auditorium"
    assert result.warnings == ()


def test_dedupe_is_idempotent():
    records = [record(link=f"https://x/e/{i % 3}", title=str(i)) for i in range(9)]

    once = dedupe(records)

    assert [r.title for r in once] == ["0", "1", "2"]
    assert dedupe(once) == once


def test_dedupe_keeps_linkless_records_for_reporting():
    records = [record(link=""), record(link="")]

    assert len(dedupe(records)) == 2


def test_resolved_event(normalizer):
    (event,) = normalizer.normalize([record(venue="Kamani Auditorium", price="₹ 499")]).events

    assert event.start == datetime(2024, 8, 15, 19, 30, tzinfo=IST)
    assert event.start.tzinfo.key == "Asia/Kolkata"
    assert event.duration_minutes == 120
    assert event.source_url == "https://x/e/1"
    assert event.description == (
        "BookMyShow\n\nHamlet\n\nVenue: Kamani Auditorium\n"
        "Time: 15 Aug 2024, 07:30 PM\nPrice: ₹ 499\nTickets: https://x/e/1"
    )


def test_null_date_is_dropped_with_warning(normalizer):
    dropped = record(when=None)

    result = normalizer.normalize([dropped])

    assert result.events == ()
    assert len(result.warnings) == 1
    assert result.warnings[0].reason == DROP_UNPARSEABLE_DATE
    assert result.warnings[0].record == dropped


def test_missing_link_and_title_are_reported(normalizer):
    result = normalizer.normalize([record(link=""), record(link="https://x/e/2", title="  ")])

    assert [w.reason for w in result.warnings] == [DROP_MISSING_LINK, DROP_MISSING_TITLE]


def test_order_is_extraction_order(normalizer):
    records = [
        record(link="https://x/e/b", title="B", when="16 Aug 2024, 07:30 PM"),
        record(link="https://x/e/a", title="A", when="15 Aug 2024, 07:30 PM"),
        record(link="https://x/e/c", title="C", when=None),
        record(link="https://x/e/d", title="D", when="17 Aug 2024, 07:30 PM",
               source_channel=SourceChannel.API),
    ]

    result = normalizer.normalize(records)

    assert [e.title for e in result.events] == ["B", "A", "D"]
    assert [w.record.title for w in result.warnings] == ["C"]


def test_duration_is_configurable():
    normalizer = Normalizer(DateNormalizer(), default_duration_minutes=90)

    (event,) = normalizer.normalize([record()]).events

    assert event.duration_minutes == 90
