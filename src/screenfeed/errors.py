"""Error hierarchy for pipeline failure classification.

Transient failures (should retry) are separated from permanent ones (should
not retry) so the tenacity-based retrier in ``screenfeed.retry`` can classify
them by type alone.

Per-record problems (an unparseable date, a card without a link) are NOT
exceptions: they are reported as ``DropWarning`` entries on the
``PipelineResult`` and the run continues.
"""


class ScrapingError(Exception):
    """Base exception for all pipeline errors."""

    pass


class TransientError(ScrapingError):
    """Temporary failure that may succeed on retry.

    Examples: navigation timeouts, dropped connections, a page that never
    reached its readiness condition.
    """

    pass


class NavigationError(TransientError):
    """Page navigation failed or timed out."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Navigation to {url} failed: {reason}")
        self.url = url
        self.reason = reason


class PermanentError(ScrapingError):
    """Failure that won't succeed on retry."""

    pass


class EncodingError(PermanentError):
    """The calendar encoder rejected its input.

    Raised by ``CalendarEncoder`` implementations. Encoding is deterministic,
    so the same input always fails the same way.
    """

    pass


class EncodingFailed(PermanentError):
    """Feed assembly failed because the encoder reported an error.

    Terminal for the run.
    """

    def __init__(self, reason: str) -> None:
        super().__init__(f"Calendar encoding failed: {reason}")
        self.reason = reason


class RetryExhausted(ScrapingError):
    """A retried operation kept failing until its attempt bound.

    Deliberately not a TransientError: an outer retrier must not retry it again.
    """

    def __init__(self, last_error: BaseException, attempts: int) -> None:
        super().__init__(f"Gave up after {attempts} attempt(s): {last_error}")
        self.last_error = last_error
        self.attempts = attempts
