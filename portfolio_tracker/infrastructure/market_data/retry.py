"""
Exponential backoff shared by the market data clients.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from portfolio_tracker.core.exceptions import (
    ExternalServiceError,
    InvalidSymbolError,
    RateLimitedError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int, initial_delay: float) -> float:
    """Delay before retrying after `attempt` (0-based) failed: initial × 2^attempt."""
    return initial_delay * (2 ** attempt)


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, InvalidSymbolError):
        return False
    if isinstance(exc, ExternalServiceError):
        return exc.transient
    return False


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int,
    initial_delay: float,
    max_delay: Optional[float] = None,
    description: str = "request",
    sleep: Sleep = asyncio.sleep,
) -> T:
    """
    Run `operation` up to `max_retries` times.

    Non-retryable errors (unknown symbol, non-transient provider errors) are
    raised straight away. After the last attempt the last error is raised;
    there is no sleep after the final failure.
    """
    attempts = max(1, max_retries)
    last_exc: Optional[BaseException] = None

    for attempt in range(attempts):
        try:
            return await operation()
        except Exception as exc:
            last_exc = exc
            if not is_retryable(exc):
                raise
            if attempt >= attempts - 1:
                break

            delay = backoff_delay(attempt, initial_delay)
            if isinstance(exc, RateLimitedError) and exc.retry_after:
                delay = max(delay, exc.retry_after)
            if max_delay is not None:
                delay = min(delay, max_delay)

            logger.debug(
                "Retrying %s after attempt %d/%d failed (%s); sleeping %.2fs",
                description, attempt + 1, attempts, exc, delay,
            )
            await sleep(delay)

    assert last_exc is not None
    raise last_exc
