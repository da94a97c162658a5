"""Scroll-driven content materialization for lazily rendered listing pages.

Listing pages append cards as the user scrolls and rarely signal when they are
done. The stabilizer scrolls to the bottom, waits, and measures a size signal;
the page counts as fully materialized once the signal has stayed the same for
``max_stalls`` consecutive readings. A single unchanged reading is not enough
because lazy loads are network-bound and arrive with jitter.
"""

import asyncio
from collections.abc import Awaitable, Callable

from screenfeed.logging import get_logger
from screenfeed.models import StabilizationState
from screenfeed.session import PageSession

logger = get_logger(__name__)

SCROLL_HEIGHT_JS = "() => document.body ? document.body.scrollHeight : 0"
TEXT_LENGTH_JS = "() => document.body ? document.body.innerText.length : 0"
SCROLL_TO_BOTTOM_JS = "() => window.scrollTo(0, document.body.scrollHeight)"


def _as_int(value: object) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    return 0


class ContentStabilizer:
    """Drive a page until its content stops growing.

    Args:
        scroll_delay_s: Pause after each scroll, in seconds.
        max_stalls: Consecutive unchanged readings that end the loop.
        max_cycles: Hard cap on readings, for pages that never stop growing.
        sleep: Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        scroll_delay_s: float = 2.5,
        max_stalls: int = 5,
        max_cycles: int = 200,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_stalls < 1:
            raise ValueError("max_stalls must be at least 1")
        self.scroll_delay_s = scroll_delay_s
        self.max_stalls = max_stalls
        self.max_cycles = max(max_cycles, max_stalls + 1)
        self.sleep = sleep

    async def scroll_until_stable(self, session: PageSession) -> int:
        """Scroll to the bottom until scroll height stalls. Returns cycles run."""

        async def scroll() -> None:
            await session.evaluate(SCROLL_TO_BOTTOM_JS)

        cycles = await self._poll(session, SCROLL_HEIGHT_JS, scroll, "scroll_height")
        logger.info("scroll_stabilized", cycles=cycles)
        return cycles

    async def settle_text(self, session: PageSession) -> int:
        """Wait until rendered text length stalls, without scrolling.

        Catches hydration that is not triggered by scrolling.
        """
        cycles = await self._poll(session, TEXT_LENGTH_JS, None, "text_length")
        logger.info("text_settled", cycles=cycles)
        return cycles

    async def _poll(
        self,
        session: PageSession,
        signal_script: str,
        action: Callable[[], Awaitable[None]] | None,
        signal_name: str,
    ) -> int:
        state = StabilizationState()

        while state.stall_count < self.max_stalls:
            if state.cycles >= self.max_cycles:
                logger.warning(
                    "stabilization_cap_reached",
                    signal=signal_name,
                    cycles=state.cycles,
                    last_value=state.previous_signal,
                )
                break

            current = _as_int(await session.evaluate(signal_script))
            state.cycles += 1

            if current == state.previous_signal:
                state.stall_count += 1
            else:
                state.stall_count = 0
            state.previous_signal = current

            logger.debug(
                "stabilization_cycle",
                signal=signal_name,
                value=current,
                stalls=state.stall_count,
            )

            if state.stall_count >= self.max_stalls:
                break
            if action is not None:
                await action()
            await self.sleep(self.scroll_delay_s)

        return state.cycles
