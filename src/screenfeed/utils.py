"""Shared Playwright page setup for resource blocking and timeouts."""

from playwright.async_api import Page, Route

from screenfeed.logging import get_logger

log = get_logger(__name__)

# Stylesheets stay allowed: lazy loading depends on real layout and scroll height.
BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset({"image", "font", "media"})


async def configure_page_for_scraping(
    page: Page, *, block_resources: bool = True, timeout_ms: int = 30000
) -> None:
    """Set up a Playwright page for efficient scraping.

    Blocks heavy resource types (images, fonts, media) to reduce bandwidth
    and sets the default action and navigation timeouts.

    Args:
        page: Playwright Page instance.
        block_resources: If False, let every request through.
        timeout_ms: Default timeout for page actions and navigation.
    """

    async def _block_resources(route: Route) -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    if block_resources:
        await page.route("**/*", _block_resources)
        log.debug("resource_blocking_enabled", types=sorted(BLOCKED_RESOURCE_TYPES))
    page.set_default_timeout(timeout_ms)
    page.set_default_navigation_timeout(timeout_ms)
