"""Shared fixtures: an in-memory PageSession so no browser is needed."""

from contextlib import asynccontextmanager

import pytest

from screenfeed.config import ScraperConfig
from screenfeed.errors import NavigationError
from screenfeed.models import CapturedPayload
from screenfeed.pages.listings import ANCHOR_SNAPSHOT_JS, CARD_SNAPSHOT_JS
from screenfeed.stabilizer import SCROLL_HEIGHT_JS, SCROLL_TO_BOTTOM_JS, TEXT_LENGTH_JS


class FakePageSession:
    """Scripted PageSession.

    ``heights`` / ``text_lengths`` are consumed one value per reading; the
    last value repeats forever once the list runs out.
    """

    def __init__(
        self,
        *,
        heights=None,
        text_lengths=None,
        anchors=None,
        cards=None,
        payloads=None,
        nav_failures=0,
    ):
        self.heights = list(heights or [1000])
        self.text_lengths = list(text_lengths or [500])
        self.anchors = anchors or []
        self.cards = cards or []
        self.payloads = payloads or []
        self.nav_failures = nav_failures
        self.navigations = 0
        self.scrolls = 0
        self.readings = {"height": 0, "text": 0}
        self.predicate = None
        self.closed = False

    async def navigate(self, url, *, wait_until, timeout_ms):
        self.navigations += 1
        if self.navigations <= self.nav_failures:
            raise NavigationError(url, f"timed out after {timeout_ms} ms")

    async def evaluate(self, script, arg=None):
        if script == SCROLL_HEIGHT_JS:
            self.readings["height"] += 1
            return self._next(self.heights)
        if script == TEXT_LENGTH_JS:
            self.readings["text"] += 1
            return self._next(self.text_lengths)
        if script == SCROLL_TO_BOTTOM_JS:
            self.scrolls += 1
            return None
        if script == ANCHOR_SNAPSHOT_JS:
            return self.anchors
        if script == CARD_SNAPSHOT_JS:
            return self.cards
        raise AssertionError(f"unexpected script: {script}")

    @staticmethod
    def _next(values):
        if len(values) > 1:
            return values.pop(0)
        return values[0]

    def capture_responses(self, predicate):
        self.predicate = predicate

    async def drain_payloads(self):
        if self.predicate is None:
            return []
        drained = [p for p in self.payloads if self.predicate(p.url)]
        self.payloads = []
        return drained

    async def close(self):
        self.closed = True


class RecordingSleep:
    """Awaitable stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def session_factory(session):
    @asynccontextmanager
    async def factory(config):
        try:
            yield session
        finally:
            await session.close()

    return factory


def anchor(href, *, heading="", fallback="", text=""):
    return {"href": href, "heading": heading, "fallback": fallback, "text": text}


def api_payload(events, url="https://in.bookmyshow.com/api/explore/v1/events"):
    return CapturedPayload(url=url, body={"data": {"events": events}})


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def config():
    return ScraperConfig(
        target_url="https://in.bookmyshow.com/explore/plays-national-capital-region-ncr",
        site_origin="https://in.bookmyshow.com",
        max_retries=3,
        retry_base_delay_s=2.0,
        scroll_delay_ms=0,
        max_stalls=2,
        api_fallback_threshold=50,
        assumed_timezone="Asia/Kolkata",
        event_categories=["Theatre"],
        source_label="BookMyShow",
    )
