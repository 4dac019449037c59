"""RetryPolicy and retry_with_backoff: bounded exponential backoff."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy:
    """Configurable retry with exponential backoff and optional jitter."""

    def __init__(
        self,
        *,
        max_retries: int = 5,
        initial_delay: float = 1.0,
        max_delay: float = 10.0,
        jitter: bool = False,
    ) -> None:
        """Configure retry behavior.

        Args:
            max_retries: Retries allowed after the first attempt.
            initial_delay: Delay in seconds before the first retry.
            max_delay: Cap on delay in seconds.
            jitter: If True, multiply each delay by a random factor in [0.5, 1.5].
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if initial_delay < 0 or max_delay < 0:
            raise ValueError("initial_delay and max_delay must be >= 0")
        if initial_delay > max_delay:
            raise ValueError("initial_delay must be <= max_delay")
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.jitter = jitter

    def __repr__(self) -> str:
        return (
            f"RetryPolicy(max_retries={self.max_retries}, "
            f"initial_delay={self.initial_delay}, max_delay={self.max_delay})"
        )

    def should_retry(self, attempt: int) -> bool:
        """Return True if a retry is allowed after failure number *attempt* (0-based)."""
        return 0 <= attempt < self.max_retries

    def delay_for_attempt(self, attempt: int) -> float:
        """Return the backoff before retrying failure number *attempt* (0-based).

        ``min(initial_delay * 2**attempt, max_delay)``.
        """
        if attempt < 0:
            return 0.0
        delay = min(self.initial_delay * (2**attempt), self.max_delay)
        if self.jitter:
            delay = delay * (0.5 + random.random())  # noqa: S311
        return float(max(0.0, delay))


DEFAULT_RETRY_POLICY = RetryPolicy()


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    is_retryable: Callable[[BaseException], bool],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    *,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    description: str = "operation",
) -> T:
    """Run *operation*, retrying retryable failures with exponential backoff.

    Non-retryable errors propagate immediately. Once ``policy.max_retries``
    retries are used up, the last error propagates unchanged.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e) or not policy.should_retry(attempt):
                raise
            delay = policy.delay_for_attempt(attempt)
            logger.warning(
                "%s failed (retry %d/%d in %.2fs): %s",
                description,
                attempt + 1,
                policy.max_retries,
                delay,
                e,
            )
            await sleep(delay)
            attempt += 1
