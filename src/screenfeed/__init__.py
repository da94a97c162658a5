"""screenfeed: listings page to iCalendar feed.

Scrapes a dynamically rendered screenings/events listings page with
Playwright, reconciles the rendered DOM with background API payloads, and
publishes the result as an .ics feed.
"""

from screenfeed.config import ScraperConfig
from screenfeed.models import CanonicalEvent, PipelineResult, RawRecord
from screenfeed.pipeline import ListingsPipeline, RunReport

__all__ = [
    "ListingsPipeline",
    "RunReport",
    "ScraperConfig",
    "CanonicalEvent",
    "PipelineResult",
    "RawRecord",
]
