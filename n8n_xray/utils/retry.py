"""Backoff helpers for retrying requests against the platform API."""

from __future__ import annotations

import asyncio
import random

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def compute_backoff(attempt: int, base: float = 1.5, jitter: float = 0.5) -> float:
    """Compute exponential backoff with jitter for a zero-based ``attempt``."""
    delay = base ** attempt
    return delay + random.uniform(0, jitter)


def is_retryable_status(status_code: int) -> bool:
    return status_code in RETRYABLE_STATUS_CODES


async def schedule_retry(attempt: int, base: float = 1.5) -> None:
    """Sleep for the computed backoff delay before the next attempt."""
    await asyncio.sleep(compute_backoff(attempt, base=base))
