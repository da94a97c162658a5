"""Scrape a listings page and write it as an iCalendar feed.

Run with: screenfeed
Debug:    screenfeed --headed --log-level DEBUG
Other:    screenfeed --url https://in.bookmyshow.com/explore/plays-mumbai --output data/mumbai.ics
Stdout:   screenfeed --output -

Every option also has a SCREENFEED_* environment variable (see
screenfeed.config.ScraperConfig); command-line flags win.

Exit codes:
  0 = success (including a run that found no events)
  1 = error (navigation retries exhausted, encoding failure, bad configuration)
"""

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from screenfeed.config import ScraperConfig, get_config
from screenfeed.errors import ScrapingError
from screenfeed.feed import EncodedFeed, ICalendarEncoder
from screenfeed.logging import clear_run_context, get_logger, setup_logging
from screenfeed.pipeline import ListingsPipeline, RunReport

logger = get_logger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        prog="screenfeed",
        description="Turn a dynamically rendered listings page into an .ics feed.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--url", dest="target_url", help="Listings page to scrape.")
    parser.add_argument(
        "--origin",
        dest="site_origin",
        help="Origin for resolving relative event links.",
    )
    parser.add_argument(
        "--output",
        dest="output_path",
        help="Output .ics path, or '-' for stdout (default: feed.ics).",
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Launch browser in headed mode (visible window).",
    )
    parser.add_argument(
        "--threshold",
        dest="api_fallback_threshold",
        type=int,
        help="Merge API records when fewer DOM records than this are found.",
    )
    parser.add_argument(
        "--timezone",
        dest="assumed_timezone",
        help="IANA timezone listing times are expressed in.",
    )
    parser.add_argument(
        "--write-empty",
        dest="write_empty_feed",
        action="store_true",
        default=None,
        help="Write an empty calendar when no events are found.",
    )
    parser.add_argument("--json-logs", dest="log_json", action="store_true", default=None)
    parser.add_argument("--log-level", dest="log_level")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace, base: ScraperConfig | None = None) -> ScraperConfig:
    """Overlay command-line flags on the environment configuration."""
    base = base or get_config()
    overrides = {
        key: value
        for key, value in vars(args).items()
        if value is not None and key != "headed"
    }
    if args.headed:
        overrides["headless"] = False
    # model_validate re-runs validators (model_copy would skip them)
    return ScraperConfig.model_validate({**base.model_dump(), **overrides})


def write_feed(payload: bytes, output_path: str) -> None:
    """Write ``payload`` to ``output_path``, replacing any existing file."""
    if output_path == "-":
        sys.stdout.buffer.write(payload)
        sys.stdout.flush()
        return
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(payload)


def persist(report: RunReport, config: ScraperConfig) -> bool:
    """Write the run's feed if there is one. Returns True if a file was written."""
    if isinstance(report.outcome, EncodedFeed):
        payload = report.outcome.payload
    elif config.write_empty_feed:
        payload = ICalendarEncoder(calendar_name=config.calendar_name).encode([])
    else:
        logger.info("feed_not_written", reason="no_events", output=config.output_path)
        return False

    write_feed(payload, config.output_path)
    logger.info("feed_written", output=config.output_path, bytes=len(payload))
    return True


async def run(config: ScraperConfig) -> RunReport:
    try:
        report = await ListingsPipeline(config).run()
    finally:
        clear_run_context()
    persist(report, config)
    return report


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = _parse_args(argv)

    try:
        config = build_config(args)
    except ValidationError as e:
        setup_logging()
        logger.error("invalid_configuration", error=str(e))
        return 1

    setup_logging(json_output=config.log_json, log_level=config.log_level)

    try:
        report = asyncio.run(run(config))
    except ScrapingError as e:
        logger.error("run_failed", error=str(e), type=type(e).__name__)
        return 1

    reasons: dict[str, int] = {}
    for warning in report.result.warnings:
        reasons[warning.reason] = reasons.get(warning.reason, 0) + 1
    logger.info("run_summary", events=len(report.result.events), dropped=reasons)
    return 0


if __name__ == "__main__":
    sys.exit(main())
