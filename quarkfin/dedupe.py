"""Collapse concurrent identical requests into one in-flight call."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


def assessment_key(website: str, country_code: str) -> str:
    return f"assessment-{website}-{country_code}"


def business_risk_key(domain: str, assessment_type: str) -> str:
    return f"business-risk-{domain}-{assessment_type}"


def website_risk_key(website: str, record_id: str) -> str:
    return f"website-risk-{website}-{record_id}"


def payment_key(plan_id: str, billing_cycle: str) -> str:
    return f"payment-{plan_id}-{billing_cycle}"


class RequestDeduplicator:
    """Shares one pending task between callers using the same key.

    The key is dropped as soon as the task settles, so the next call with
    that key issues a fresh request.
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Task[Any]] = {}

    def __len__(self) -> int:
        return len(self._in_flight)

    def in_flight(self, key: str) -> bool:
        return key in self._in_flight

    async def run(self, key: str, request_fn: Callable[[], Awaitable[T]]) -> T:
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(request_fn())
            self._in_flight[key] = task
            task.add_done_callback(lambda _t, k=key: self._release(k, _t))
        else:
            logger.debug("api_request_deduplicated", key=key)

        # One caller going away must not cancel the call the others wait on.
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the exception retrieved; callers re-raise it themselves.
            task.exception()
