"""Exponential backoff for flaky network and git operations."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

BASE_DELAY_MS = 1000


def backoff_delay_ms(attempt: int, cap_ms: int) -> int:
    """Delay before retrying after failed *attempt* (1-based)."""
    return min(BASE_DELAY_MS * 2 ** (attempt - 1), cap_ms)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    cap_ms: int = 10_000,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    """Await *operation* up to *attempts* times.

    Sleeps ``min(1000 * 2**(n-1), cap_ms)`` ms after the n-th failure and
    re-raises the last error once attempts are exhausted.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except retry_on as exc:
            if attempt == attempts:
                logger.warning("Giving up after %d attempt(s): %s", attempts, exc)
                raise
            delay = backoff_delay_ms(attempt, cap_ms)
            logger.info(
                "Attempt %d/%d failed (%s); retrying in %d ms",
                attempt,
                attempts,
                exc,
                delay,
            )
            await sleep(delay / 1000)
    raise AssertionError("unreachable")
