"""Bounded retry for fallible page-acquisition steps.

Backoff is linear (attempt N waits ``N * base_delay``) so the worst-case total
wait for a fixed attempt count is known up front.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from screenfeed.errors import RetryExhausted, TransientError
from screenfeed.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _log_retry(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    error = outcome.exception() if outcome is not None else None
    logger.warning(
        "navigation_retry",
        attempt=retry_state.attempt_number,
        delay_s=retry_state.upcoming_sleep,
        error=str(error),
        type=type(error).__name__,
    )


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int,
    base_delay: float,
    *,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds or ``max_attempts`` is reached.

    Only TransientError is retried; anything else propagates immediately.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt.
        max_attempts: Upper bound on calls to ``operation``.
        base_delay: Seconds; the wait after failed attempt N is ``N * base_delay``.
        sleep: Awaitable sleep, replaceable in tests.

    Raises:
        RetryExhausted: After the last attempt failed, wrapping its error.
        ValueError: If ``max_attempts`` is less than 1.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_incrementing(start=base_delay, increment=base_delay),
        retry=retry_if_exception_type(TransientError),
        before_sleep=_log_retry,
        sleep=sleep,
    )
    try:
        return await retrying(operation)
    except RetryError as e:
        last = e.last_attempt
        error = last.exception()
        logger.error(
            "retries_exhausted",
            attempts=last.attempt_number,
            error=str(error),
        )
        raise RetryExhausted(error, last.attempt_number) from error
