"""Pipeline configuration loaded from environment variables.

Every tunable of a run (target page, retry and scroll bounds, fallback
threshold, timezone, selectors, output) lives here and is threaded into the
pipeline at construction time.
"""

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class ScraperConfig(BaseSettings):
    """Scraper configuration loaded from environment variables.

    Settings are loaded from ``SCREENFEED_``-prefixed environment variables
    with sensible defaults. For local development, create a .env file in the
    project root.
    """

    # Target page
    target_url: str = Field(
        default="https://in.bookmyshow.com/explore/plays-national-capital-region-ncr",
        description="Listings page to scrape",
    )
    site_origin: str = Field(
        default="https://in.bookmyshow.com",
        description="Origin used to resolve relative event links",
    )

    # Navigation
    max_retries: int = Field(
        default=5,
        ge=1,
        description="Maximum navigation attempts before giving up",
    )
    retry_base_delay_s: float = Field(
        default=2.0,
        ge=0,
        description="Linear backoff unit: attempt N waits N * this many seconds",
    )
    navigation_timeout_ms: int = Field(
        default=90000,
        gt=0,
        description="Upper bound for a single navigation attempt",
    )
    wait_until: str = Field(
        default="networkidle",
        description="Playwright readiness condition for navigation",
    )

    # Content stabilization
    scroll_delay_ms: int = Field(
        default=2500,
        ge=0,
        description="Pause after each scroll so lazy content can load",
    )
    max_stalls: int = Field(
        default=5,
        ge=1,
        description="Consecutive unchanged readings that end stabilization",
    )
    max_scroll_cycles: int = Field(
        default=200,
        ge=1,
        description="Hard cap on stabilization cycles for endless pages",
    )

    # Extraction
    api_fallback_threshold: int = Field(
        default=50,
        ge=0,
        description="Merge API records when fewer DOM records than this were found",
    )
    api_path_marker: str = Field(
        default="/api/",
        description="Substring identifying background API responses to capture",
    )
    drain_timeout_s: float = Field(
        default=10.0,
        gt=0,
        description="How long extraction waits for API bodies still being read",
    )
    event_link_selector: str = Field(
        default="a[href*='/events/']",
        description="CSS selector for event anchors",
    )
    card_selector: str = Field(
        default="",
        description="CSS selector for event cards (empty disables card extraction)",
    )
    card_title_selector: str = Field(default="h3")
    card_date_selector: str = Field(default=".event-date")
    card_venue_selector: str = Field(default=".event-venue")
    currency_symbol: str = Field(
        default="₹",
        description="Currency symbol that prefixes prices in card text",
    )

    # Normalization
    assumed_timezone: str = Field(
        default="Asia/Kolkata",
        description="IANA zone that listing times are expressed in",
    )
    default_duration_minutes: int = Field(
        default=120,
        gt=0,
        description="Event length when the listing gives none",
    )
    date_formats: list[str] = Field(
        default=["%d %b %Y, %I:%M %p", "%d %B %Y, %I:%M %p"],
        description="strptime formats tried before free-form parsing",
    )
    source_label: str = Field(
        default="BookMyShow",
        description="Human-readable source name used in event descriptions",
    )

    # Feed output
    calendar_name: str = Field(default="Listings")
    event_categories: list[str] = Field(default=["Events"])
    output_path: str = Field(
        default="feed.ics",
        description="Where the calendar file is written (overwritten each run)",
    )
    write_empty_feed: bool = Field(
        default=False,
        description="Write an empty calendar when no events survive",
    )

    # Browser
    headless: bool = Field(default=True)
    block_resources: bool = Field(
        default=True,
        description="Abort image/font/media requests to speed up loading",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "SCREENFEED_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("assumed_timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone {value!r}") from e
        return value

    @property
    def scroll_delay_s(self) -> float:
        return self.scroll_delay_ms / 1000


# Singleton pattern
_config: ScraperConfig | None = None


def get_config() -> ScraperConfig:
    """Get the scraper configuration singleton.

    Returns:
        ScraperConfig: Scraper configuration instance
    """
    global _config
    if _config is None:
        _config = ScraperConfig()
    return _config
