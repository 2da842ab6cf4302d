"""Retry policy for rate limited model calls."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from ..exceptions import RateLimitedError

logger = structlog.get_logger(__name__)


@dataclass
class RetryPolicy:
    """Bounded retries with a linearly growing backoff.

    With the defaults a rate limited call is attempted three times, waiting
    30s and then 60s in between. `sleep` is injectable so tests need no clock.
    """

    retries: int = 2
    backoff: float = 30.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def delays(self) -> list[float]:
        """Backoff schedule, one entry per retry."""
        return [self.backoff * (attempt + 1) for attempt in range(self.retries)]

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.backoff, increment=self.backoff),
            retry=retry_if_exception_type(RateLimitedError),
            sleep=self.sleep,
            before_sleep=_log_backoff,
            reraise=True,
        )


def _log_backoff(retry_state: RetryCallState) -> None:
    wait = retry_state.next_action.sleep if retry_state.next_action else None
    logger.warning("Rate limited, waiting", attempt=retry_state.attempt_number, wait=wait)
