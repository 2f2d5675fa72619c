"""
Resilience patterns for external API calls.

This module provides:
1. Retry policies - how often and how long to back off on HTTP 429
2. map_limit - order-preserving worker pool with a concurrency bound

Usage:
    from signalboard.services.data_providers.resilience import (
        RetryAfterPolicy,
        map_limit,
    )

    policy = RetryAfterPolicy(max_retries=1, default_delay=1.0)
    delay = policy.delay_for(attempt=1, retry_after=response.headers.get("Retry-After"))

    rows = await map_limit(symbols, 6, fetch_row, return_exceptions=True)
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar, runtime_checkable

from signalboard.core.logging import get_logger

logger = get_logger("resilience")

T = TypeVar("T")
R = TypeVar("R")


# =============================================================================
# Retry policies
# =============================================================================


@runtime_checkable
class RetryPolicy(Protocol):
    """Decides how many times a rate-limited call is retried and for how long to wait."""

    max_retries: int

    def delay_for(self, attempt: int, retry_after: str | None) -> float:
        """Seconds to sleep before retry number ``attempt`` (1-based)."""
        ...


def parse_retry_after(value: str | None) -> float | None:
    """Parse a ``Retry-After`` header given in seconds.

    HTTP-date values, garbage, and non-positive or non-finite numbers yield None.
    """
    if value is None:
        return None
    try:
        seconds = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if not math.isfinite(seconds) or seconds <= 0:
        return None
    return seconds


@dataclass(frozen=True)
class RetryAfterPolicy:
    """
    Honor the upstream ``Retry-After`` header.

    Args:
        max_retries: Retries after the first 429 (default: exactly one)
        default_delay: Seconds to wait when the header is absent or unusable
        max_delay: Upper bound on any single wait
    """

    max_retries: int = 1
    default_delay: float = 1.0
    max_delay: float = 30.0

    def delay_for(self, attempt: int, retry_after: str | None) -> float:
        parsed = parse_retry_after(retry_after)
        delay = parsed if parsed is not None else self.default_delay
        return min(max(delay, self.default_delay), self.max_delay)


@dataclass(frozen=True)
class NoRetryPolicy:
    """Fail on the first 429."""

    max_retries: int = 0

    def delay_for(self, attempt: int, retry_after: str | None) -> float:
        return 0.0


# =============================================================================
# Bounded worker pool
# =============================================================================


async def map_limit(
    items: Sequence[T],
    limit: int,
    fn: Callable[[T], Awaitable[R]],
    *,
    return_exceptions: bool = False,
) -> list[Any]:
    """
    Run ``fn`` over ``items`` with at most ``limit`` calls in flight.

    Results come back in input order regardless of completion order. Each
    item writes only its own slot, so workers share no mutable state beyond
    the cursor.

    Args:
        items: Inputs to process
        limit: Maximum number of concurrent ``fn`` calls (must be >= 1)
        fn: Async callable applied to each item
        return_exceptions: If True, a failing item's slot holds its exception.
            If False, the whole batch still runs to completion and then the
            first error by input index is raised.

    Returns:
        List of results aligned with ``items``
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    results: list[Any] = [None] * len(items)
    if not items:
        return results

    cursor = 0

    async def worker() -> None:
        nonlocal cursor
        while cursor < len(items):
            index = cursor
            cursor += 1
            try:
                results[index] = await fn(items[index])
            except asyncio.CancelledError:
                raise
            except Exception as e:
                results[index] = e

    workers = min(limit, len(items))
    await asyncio.gather(*(worker() for _ in range(workers)))

    if not return_exceptions:
        for result in results:
            if isinstance(result, Exception):
                raise result

    failed = sum(1 for r in results if isinstance(r, Exception))
    if failed:
        logger.debug(f"map_limit finished with {failed}/{len(items)} failed items")
    return results
