"""Bounded retry with jittered exponential backoff for loopback HTTP calls."""
import asyncio
import random
from typing import Awaitable, Callable, TypeVar

import httpx
import structlog

log = structlog.get_logger()

T = TypeVar("T")

BASE_DELAY_SEC = 0.25
MAX_DELAY_SEC = 2.0

# Only failures that happen before the provider saw the request are retried
RETRYABLE_ERRORS: tuple[type[Exception], ...] = (httpx.ConnectError, httpx.ConnectTimeout)


def backoff_delay(attempt: int, base: float = BASE_DELAY_SEC, cap: float = MAX_DELAY_SEC) -> float:
    """Exponential delay for ``attempt`` (0-based) with up to +25% jitter."""
    wait = base * (2 ** attempt)
    wait = wait * (1.0 + random.uniform(0.0, 0.25))
    return min(wait, cap)


async def with_retries(
    call: Callable[[], Awaitable[T]],
    retries: int,
    *,
    event: str,
    retry_on: tuple[type[Exception], ...] = RETRYABLE_ERRORS,
) -> T:
    """Run ``call`` and retry it up to ``retries`` times on ``retry_on`` errors.

    Callers bound the total latency themselves (wait_for around this).
    """
    attempt = 0
    while True:
        try:
            return await call()
        except retry_on as exc:
            if attempt >= retries:
                raise
            wait = backoff_delay(attempt)
            log.warning(f"{event}.retry", error=str(exc), attempt=attempt + 1, wait_sec=round(wait, 2))
            attempt += 1
            await asyncio.sleep(wait)
