"""Retry-with-backoff policy for calls to the generation service."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterator, Optional, TypeVar

from ..errors import TransientServiceError
from ..logging import get_logger

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]


def retry_on_transient(exc: BaseException) -> bool:
    return isinstance(exc, TransientServiceError)


@dataclass
class RetryPolicy:
    """How many times to call, how long to wait in between, and what is worth retrying."""

    max_attempts: int = 3
    initial_delay: float = 2.0
    backoff_multiplier: float = 2.0
    is_retryable: Callable[[BaseException], bool] = field(default=retry_on_transient)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0:
            raise ValueError("initial_delay must not be negative")

    def delays(self) -> Iterator[float]:
        """Yield the wait before each retry (one fewer than ``max_attempts``)."""
        delay = self.initial_delay
        for _ in range(self.max_attempts - 1):
            yield delay
            delay *= self.backoff_multiplier

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        sleep: Optional[SleepFn] = None,
        on_retry: Optional[Callable[[int, float, BaseException], None]] = None,
    ) -> T:
        """Run ``operation`` until it succeeds, fails terminally, or attempts run out.

        The last retryable error is re-raised on exhaustion; non-retryable errors
        propagate on the attempt that raised them.
        """
        sleeper = sleep or asyncio.sleep
        logger = get_logger("retry")
        delays = self.delays()
        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as exc:
                if not self.is_retryable(exc):
                    raise
                delay = next(delays, None)
                if delay is None:
                    logger.warning("Attempt %d/%d failed: %s; giving up", attempt, self.max_attempts, exc)
                    raise
                logger.warning(
                    "Attempt %d/%d failed: %s; retrying in %.1fs",
                    attempt,
                    self.max_attempts,
                    exc,
                    delay,
                )
                if on_retry is not None:
                    on_retry(attempt, delay, exc)
                await sleeper(delay)
                attempt += 1


__all__ = ["RetryPolicy", "retry_on_transient"]
