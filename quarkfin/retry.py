"""Bounded retry with linearly growing backoff."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, TypeVar

import structlog

from quarkfin.errors import APIError, TIMEOUT_ERROR, normalize_error

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0

# Answered the same way on every attempt.
NON_RETRYABLE_STATUSES = frozenset({400, 401, 403, 404})


def should_retry(error: APIError) -> bool:
    """Whether a normalised error is worth another attempt.

    Timeouts are not retried: the request may already have run server-side.
    """
    if error.status in NON_RETRYABLE_STATUSES:
        return False
    if error.code == TIMEOUT_ERROR:
        return False
    return True


def backoff_delay(failed_attempts: int, base_delay: float = DEFAULT_BASE_DELAY) -> float:
    """Delay to wait after the n-th failed attempt, before the next one."""
    return base_delay * failed_attempts


async def retry(
    request_fn: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run ``request_fn`` up to ``max_attempts`` times.

    Raises the last normalised error when the budget is spent or the error
    is not retryable.
    """
    attempt = 1
    while True:
        try:
            return await request_fn()
        except Exception as exc:
            error = normalize_error(exc)
            if attempt >= max_attempts or not should_retry(error):
                if error is exc:
                    raise
                raise error from exc

            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                "api_request_retry",
                attempt=attempt + 1,
                max_attempts=max_attempts,
                delay_seconds=delay,
                code=error.code,
                status=error.status,
            )
            await sleep(delay)
            attempt += 1
