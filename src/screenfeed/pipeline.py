"""Run orchestration: one page session, one pass through every stage.

load (with retry) -> stabilize -> extract -> normalize -> assemble

The session is opened and closed here, including on failure paths. Retry
exhaustion and encoding failures propagate to the caller; per-record problems
end up as warnings on the result.
"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager

from pydantic import BaseModel, ConfigDict

from screenfeed.config import ScraperConfig
from screenfeed.dates import DateNormalizer
from screenfeed.extractor import DualChannelExtractor, ExtractionResult
from screenfeed.feed import (
    CalendarEncoder,
    EncodedFeed,
    FeedAssembler,
    ICalendarEncoder,
    NoEventsResult,
)
from screenfeed.logging import bind_run_context, get_logger
from screenfeed.models import PipelineResult
from screenfeed.normalizer import Normalizer
from screenfeed.pages.listings import ListingsPage
from screenfeed.retry import retry_async
from screenfeed.session import PageSession, open_playwright_session
from screenfeed.stabilizer import ContentStabilizer
from screenfeed.strategies import FieldStrategies

logger = get_logger(__name__)

SessionFactory = Callable[[ScraperConfig], AbstractAsyncContextManager[PageSession]]


class RunReport(BaseModel):
    """Everything one run produced."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    extraction: ExtractionResult
    result: PipelineResult
    outcome: NoEventsResult | EncodedFeed


class ListingsPipeline:
    """Scrape one listings page into a calendar feed.

    Args:
        config: Run configuration.
        session_factory: Opens a PageSession as an async context manager.
            Defaults to a headless Playwright session.
        encoder: Calendar encoder. Defaults to ICalendarEncoder.
        sleep: Awaitable sleep used for backoff and scroll pauses.
    """

    def __init__(
        self,
        config: ScraperConfig,
        session_factory: SessionFactory = open_playwright_session,
        encoder: CalendarEncoder | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config
        self.session_factory = session_factory
        self.encoder = encoder or ICalendarEncoder(calendar_name=config.calendar_name)
        self.sleep = sleep

        self.stabilizer = ContentStabilizer(
            scroll_delay_s=config.scroll_delay_s,
            max_stalls=config.max_stalls,
            max_cycles=config.max_scroll_cycles,
            sleep=sleep,
        )
        self.strategies = FieldStrategies.for_currency(config.currency_symbol)
        self.normalizer = Normalizer(
            DateNormalizer(config.assumed_timezone, config.date_formats),
            default_duration_minutes=config.default_duration_minutes,
            source_label=config.source_label,
        )
        self.assembler = FeedAssembler(
            self.encoder, categories=config.event_categories
        )

    def _is_api_response(self, url: str) -> bool:
        return self.config.api_path_marker in url

    def _listings_page(self, session: PageSession) -> ListingsPage:
        c = self.config
        return ListingsPage(
            session,
            c.site_origin,
            link_selector=c.event_link_selector,
            card_selector=c.card_selector,
            card_title_selector=c.card_title_selector,
            card_date_selector=c.card_date_selector,
            card_venue_selector=c.card_venue_selector,
            strategies=self.strategies,
        )

    async def load(self, session: PageSession) -> None:
        """Navigate to the target page, retrying transient failures."""
        c = self.config

        async def navigate() -> None:
            await session.navigate(
                c.target_url,
                wait_until=c.wait_until,
                timeout_ms=c.navigation_timeout_ms,
            )

        await retry_async(
            navigate, c.max_retries, c.retry_base_delay_s, sleep=self.sleep
        )

    async def scrape(self, session: PageSession) -> ExtractionResult:
        """Load, stabilize and extract from an already-open session."""
        session.capture_responses(self._is_api_response)
        await self.load(session)
        await self.stabilizer.scroll_until_stable(session)
        await self.stabilizer.settle_text(session)

        extractor = DualChannelExtractor(
            self._listings_page(session),
            self.config.site_origin,
            threshold=self.config.api_fallback_threshold,
        )
        return await extractor.extract(session)

    async def run(self) -> RunReport:
        run_id = uuid.uuid4().hex[:12]
        bind_run_context(run_id=run_id, target_url=self.config.target_url)
        logger.info("pipeline_started")

        async with self.session_factory(self.config) as session:
            extraction = await self.scrape(session)

        result = self.normalizer.normalize(extraction.records)
        outcome = self.assembler.assemble(result)

        logger.info(
            "pipeline_finished",
            events=len(result.events),
            warnings=len(result.warnings),
            api_fallback=extraction.used_api_fallback,
        )
        return RunReport(
            run_id=run_id, extraction=extraction, result=result, outcome=outcome
        )
