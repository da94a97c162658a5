"""Page session abstraction and its Playwright implementation.

The pipeline only talks to a ``PageSession``: navigate, evaluate a script in
the page, capture background JSON responses, close. ``PlaywrightPageSession``
backs it with a headless Chromium page; tests use an in-memory fake.

Captured responses travel over an asyncio.Queue: the response listener only
ever puts onto it, and the extractor drains it after scrolling has finished.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, Protocol

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from screenfeed.config import ScraperConfig
from screenfeed.errors import NavigationError, TransientError
from screenfeed.logging import get_logger
from screenfeed.models import CapturedPayload
from screenfeed.utils import configure_page_for_scraping

if TYPE_CHECKING:
    from playwright.async_api import Browser, Page, Response

logger = get_logger(__name__)

BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]


class PageSession(Protocol):
    """What the pipeline needs from a browser page."""

    async def navigate(self, url: str, *, wait_until: str, timeout_ms: int) -> None:
        ...

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        ...

    def capture_responses(self, predicate: Callable[[str], bool]) -> None:
        ...

    async def drain_payloads(self) -> list[CapturedPayload]:
        ...

    async def close(self) -> None:
        ...


class PlaywrightPageSession:
    """PageSession backed by a single Playwright page.

    Owns the browser it was given and closes it on ``close()``.
    """

    def __init__(
        self,
        page: "Page",
        browser: "Browser | None" = None,
        drain_timeout_s: float = 10.0,
    ) -> None:
        self.page = page
        self.browser = browser
        self.drain_timeout_s = drain_timeout_s
        self._payloads: asyncio.Queue[CapturedPayload] = asyncio.Queue()
        self._pending: set[asyncio.Task[None]] = set()
        self._predicate: Callable[[str], bool] | None = None
        self._closed = False

    async def navigate(self, url: str, *, wait_until: str, timeout_ms: int) -> None:
        """Load ``url`` and wait for the readiness condition.

        Raises:
            NavigationError: On timeout, network failure, or a 5xx response.
        """
        try:
            response = await self.page.goto(
                url, wait_until=wait_until, timeout=timeout_ms
            )
        except PlaywrightTimeoutError as e:
            raise NavigationError(url, f"timed out after {timeout_ms} ms") from e
        except PlaywrightError as e:
            raise NavigationError(url, str(e)) from e

        if response is not None and response.status >= 500:
            raise NavigationError(url, f"server returned {response.status}")

        logger.info(
            "page_navigated",
            url=url,
            status=response.status if response is not None else None,
        )

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        try:
            return await self.page.evaluate(script, arg)
        except PlaywrightError as e:
            raise TransientError(f"Page evaluation failed: {e}") from e

    def capture_responses(self, predicate: Callable[[str], bool]) -> None:
        """Start queueing JSON bodies of responses whose URL matches ``predicate``."""
        if self._predicate is None:
            self.page.on("response", self._on_response)
        self._predicate = predicate

    def _on_response(self, response: "Response") -> None:
        if self._predicate is None or not self._predicate(response.url):
            return
        task = asyncio.ensure_future(self._read_payload(response))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _read_payload(self, response: "Response") -> None:
        try:
            body = await response.json()
        except (PlaywrightError, ValueError) as e:
            logger.debug("api_payload_skipped", url=response.url, error=str(e))
            return
        self._payloads.put_nowait(CapturedPayload(url=response.url, body=body))
        logger.debug("api_payload_captured", url=response.url)

    async def drain_payloads(self) -> list[CapturedPayload]:
        """Return every payload captured so far, in arrival order.

        Waits up to ``drain_timeout_s`` for bodies still being read; reads that
        have not finished by then (streams, long polls) are cancelled.
        """
        if self._pending:
            _, stalled = await asyncio.wait(
                set(self._pending), timeout=self.drain_timeout_s
            )
            for task in stalled:
                task.cancel()
            if stalled:
                logger.debug(
                    "api_payload_reads_cancelled",
                    count=len(stalled),
                    timeout_s=self.drain_timeout_s,
                )
        drained: list[CapturedPayload] = []
        while not self._payloads.empty():
            drained.append(self._payloads.get_nowait())
        return drained

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.browser is not None:
            await self.browser.close()
        else:
            await self.page.close()
        logger.debug("session_closed")


@asynccontextmanager
async def open_playwright_session(
    config: ScraperConfig,
) -> AsyncIterator[PlaywrightPageSession]:
    """Launch Chromium and yield a configured session; always closes it."""
    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=config.headless, args=BROWSER_ARGS)
        session: PlaywrightPageSession | None = None
        try:
            page = await browser.new_page()
            await configure_page_for_scraping(
                page,
                block_resources=config.block_resources,
                timeout_ms=config.navigation_timeout_ms,
            )
            session = PlaywrightPageSession(
                page, browser, drain_timeout_s=config.drain_timeout_s
            )
            logger.info("session_opened", headless=config.headless)
            yield session
        finally:
            if session is not None:
                await session.close()
            else:
                await browser.close()
