"""Tests for assessment status polling."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from quarkfin.errors import TIMEOUT_ERROR, APIError
from quarkfin.schemas.assessment import AssessmentStatus, CreateAssessmentRequest
from quarkfin.schemas.business_risk import (
    AssessmentType,
    BusinessRiskStatus,
    CreateBusinessRiskAssessmentRequest,
    RiskLevel,
)


def _assessment(status: str, **extra) -> dict:
    body = {
        "id": 42,
        "website": "example.com",
        "country_code": "US",
        "status": status,
        "created_at": "2026-01-01T00:00:00Z",
        "updated_at": "2026-01-01T00:00:00Z",
    }
    body.update(extra)
    return body


class Sequence:
    """Handler answering successive requests from a script; the last entry repeats."""

    def __init__(self, *entries):
        self.entries = list(entries)
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        entry = self.entries[min(self.calls, len(self.entries) - 1)]
        self.calls += 1
        if isinstance(entry, int):
            return httpx.Response(entry, json={"error": "unavailable"})
        return httpx.Response(200, json=entry)


def _poll(make_client, handler=None, assessment_id=42, **kwargs):
    updates = []

    async def scenario():
        async with make_client(handler=handler) as api:
            return await api.poll_assessment_status(assessment_id, on_update=updates.append, **kwargs)

    return asyncio.run(scenario()), updates


# ─── Test 1: Terminal states ───────────────────────────────────────────────

class TestPollingTermination:
    """Polling stops at the first terminal snapshot."""

    @pytest.mark.parametrize("processing_reads", [0, 1, 3])
    def test_completes_after_processing(self, make_client, sleeps, processing_reads):
        """Polling should stop at the first completed snapshot."""
        script = [_assessment("processing")] * processing_reads + [
            _assessment("completed", risk_score=30.0, risk_category="low_risk")
        ]
        handler = Sequence(*script)
        final, updates = _poll(make_client, handler, max_attempts=10, interval=2.0)

        assert final.status == AssessmentStatus.COMPLETED
        assert handler.calls == processing_reads + 1
        assert len(updates) == processing_reads + 1
        assert sleeps.calls == [2.0] * processing_reads

    def test_failed_is_terminal(self, make_client):
        """Failed status should end polling."""
        handler = Sequence(_assessment("processing"), _assessment("failed"))
        final, updates = _poll(make_client, handler, max_attempts=10, interval=0)
        assert final.status == AssessmentStatus.FAILED
        assert [u.status for u in updates] == [AssessmentStatus.PROCESSING, AssessmentStatus.FAILED]

    def test_status_never_regresses_in_updates(self, make_client):
        """Reported statuses should never go backwards."""
        handler = Sequence(_assessment("pending"), _assessment("processing"), _assessment("completed"))
        _, updates = _poll(make_client, handler, max_attempts=10, interval=0)
        ranks = [u.status.rank for u in updates]
        assert ranks == sorted(ranks)


# ─── Test 2: Exhaustion ────────────────────────────────────────────────────

class TestPollingTimeout:
    """A never-terminal assessment times out after exactly max_attempts fetches."""

    def test_timeout_after_max_attempts(self, make_client, sleeps):
        """Polling should time out after max_attempts fetches."""
        handler = Sequence(_assessment("processing"))
        with pytest.raises(APIError) as info:
            _poll(make_client, handler, max_attempts=5, interval=1.5)

        assert info.value.code == TIMEOUT_ERROR
        assert info.value.status == 0
        assert info.value.details == {"assessment_id": "42", "attempts": 5}
        assert handler.calls == 5
        assert sleeps.calls == [1.5] * 4

    def test_defaults_come_from_settings(self, make_client, sleeps):
        """Attempts and interval should default from settings."""
        handler = Sequence(_assessment("pending"))

        async def scenario():
            async with make_client(handler=handler, poll_max_attempts=3, poll_interval_seconds=0.25) as api:
                return await api.poll_assessment_status(42)

        with pytest.raises(APIError):
            asyncio.run(scenario())
        assert handler.calls == 3
        assert sleeps.calls == [0.25, 0.25]


# ─── Test 3: Transient failures ────────────────────────────────────────────

class TestPollingFailures:
    """A failed fetch consumes an attempt without aborting the poll."""

    def test_failed_fetch_consumes_attempt(self, make_client):
        """Failed fetch should use an attempt and polling continues."""
        handler = Sequence(503, _assessment("completed"))
        final, updates = _poll(make_client, handler, max_attempts=5, interval=0)
        assert final.status == AssessmentStatus.COMPLETED
        assert handler.calls == 2
        assert len(updates) == 1

    def test_failures_alone_time_out(self, make_client):
        """Fetches that all fail should end in a timeout."""
        handler = Sequence(500)
        with pytest.raises(APIError) as info:
            _poll(make_client, handler, max_attempts=3, interval=0)
        assert info.value.code == TIMEOUT_ERROR
        assert handler.calls == 3

    def test_failed_fetch_is_not_retried(self, make_client, sleeps):
        """Failed poll fetch should be sent once, with only interval sleeps."""
        handler = Sequence(500)
        with pytest.raises(APIError) as info:
            _poll(make_client, handler, max_attempts=3, interval=2.0)
        assert info.value.code == TIMEOUT_ERROR
        assert handler.calls == 3
        assert sleeps.calls == [2.0, 2.0]
        assert sum(sleeps.calls) == 4.0

    def test_business_failed_fetch_is_not_retried(self, make_client, sleeps):
        """Business-risk poll fetch should not be retried."""
        handler = Sequence(502, {
            "id": "b1",
            "business_name": "Acme",
            "domain": "acme.io",
            "industry": "Retail",
            "geography": "US",
            "assessment_type": "Quick Scan",
            "status": "Completed",
            "date_created": "2026-01-01T00:00:00Z",
            "last_updated": "2026-01-01T00:00:00Z",
        })

        async def scenario():
            async with make_client(handler=handler) as api:
                return await api.poll_business_risk_assessment_status("b1", max_attempts=4, interval=1.0)

        final = asyncio.run(scenario())
        assert final.status == BusinessRiskStatus.COMPLETED
        assert handler.calls == 2
        assert sleeps.calls == [1.0]


# ─── Test 4: Cancellation ──────────────────────────────────────────────────

class TestPollingStop:
    """Setting the stop event ends polling without raising."""

    def test_stop_before_start(self, make_client):
        """Stop already set should return without fetching."""
        handler = Sequence(_assessment("processing"))
        stop = asyncio.Event()
        stop.set()
        final, updates = _poll(make_client, handler, max_attempts=5, interval=0, stop=stop)
        assert final is None
        assert handler.calls == 0
        assert updates == []

    def test_stop_from_update_returns_last_snapshot(self, make_client):
        """Stop during polling should return the last snapshot."""
        handler = Sequence(_assessment("processing"))
        stop = asyncio.Event()

        async def scenario():
            async with make_client(handler=handler) as api:
                return await api.poll_assessment_status(
                    42, on_update=lambda _snapshot: stop.set(), max_attempts=5, interval=0, stop=stop
                )

        final = asyncio.run(scenario())
        assert final.status == AssessmentStatus.PROCESSING
        assert handler.calls == 1

    def test_async_update_callback_awaited(self, make_client):
        """Async update callback should be awaited."""
        handler = Sequence(_assessment("completed"))
        seen = []

        async def record(snapshot):
            await asyncio.sleep(0)
            seen.append(snapshot.id)

        async def scenario():
            async with make_client(handler=handler) as api:
                return await api.poll_assessment_status(42, on_update=record, max_attempts=2, interval=0)

        asyncio.run(scenario())
        assert seen == [42]


# ─── Test 5: Against the development backend ───────────────────────────────

class TestBackendLifecycle:
    """Backend assessments move forward one step per read and settle."""

    def test_v1_assessment_completes(self, make_client):
        """V1 assessment should complete against the backend."""
        updates = []

        async def scenario():
            async with make_client() as api:
                created = await api.create_assessment(CreateAssessmentRequest(website="example.com", country_code="us"))
                final = await api.poll_assessment_status(created.id, on_update=updates.append, interval=0)
                return created, final

        created, final = asyncio.run(scenario())
        assert created.status == AssessmentStatus.PENDING
        assert final.status == AssessmentStatus.COMPLETED
        assert final.country_code == "US"
        assert final.results is not None
        assert final.results.kind == "website_risk"
        assert len(updates) == 3

    def test_business_assessment_completes(self, make_client):
        """Business-risk assessment should complete with a score."""
        async def scenario():
            async with make_client() as api:
                created = await api.create_business_risk_assessment(
                    CreateBusinessRiskAssessmentRequest(
                        business_name="Acme", domain="acme-widgets.com", assessment_type=AssessmentType.COMPREHENSIVE
                    )
                )
                return await api.poll_business_risk_assessment_status(created.id, interval=0)

        final = asyncio.run(scenario())
        assert final.status == BusinessRiskStatus.COMPLETED
        assert final.risk_level != RiskLevel.PENDING
        assert final.risk_score > 0
        assert final.findings.recommendations >= 8

    def test_invalid_domain_fails(self, make_client):
        """Invalid domain should end in Failed."""
        async def scenario():
            async with make_client() as api:
                created = await api.create_business_risk_assessment(
                    CreateBusinessRiskAssessmentRequest(business_name="Ghost", domain="ghost.invalid")
                )
                return await api.poll_business_risk_assessment_status(created.id, interval=0)

        final = asyncio.run(scenario())
        assert final.status == BusinessRiskStatus.FAILED
        assert final.risk_score == 0
