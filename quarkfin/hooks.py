"""Per-screen bindings exposing ``{data, loading, error}`` views over the client.

A view ``mount()``s once when its screen appears (the auto-fetch) and can
``refetch()`` on demand. Errors are kept in state as ``APIError`` values
for the screen to render; only mutations re-raise them to the caller.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Awaitable, Callable, Generic, TypeVar

import structlog

from quarkfin.client import QuarkfinClient
from quarkfin.errors import APIError, normalize_error
from quarkfin.schemas.assessment import Assessment, AssessmentListParams, CreateAssessmentRequest
from quarkfin.schemas.business_risk import (
    BusinessRiskAssessment,
    BusinessRiskInsights,
    CreateBusinessRiskAssessmentRequest,
)

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class QueryState(Generic[T]):
    data: T | None = None
    loading: bool = False
    error: APIError | None = None


class Query(Generic[T]):
    """Read-only view bound to one client operation."""

    def __init__(self, fetch: Callable[[], Awaitable[T]], initial: T | None = None, name: str = "query") -> None:
        self._fetch = fetch
        self._initial = initial
        self.name = name
        self.state: QueryState[T] = QueryState(data=initial)
        self.mounted = False

    @property
    def data(self) -> T | None:
        return self.state.data

    @property
    def loading(self) -> bool:
        return self.state.loading

    @property
    def error(self) -> APIError | None:
        return self.state.error

    async def mount(self) -> QueryState[T]:
        self.mounted = True
        return await self.refetch()

    async def refetch(self) -> QueryState[T]:
        self.state.loading = True
        self.state.error = None
        try:
            data = await self._fetch()
        except Exception as exc:
            error = normalize_error(exc)
            logger.warning("view_fetch_failed", view=self.name, code=error.code, status=error.status)
            # Keep the previous data; the screen decides how to show the error.
            self.state.error = error
        else:
            self.state.data = data
        finally:
            self.state.loading = False
        return self.state

    def reset(self) -> None:
        self.state = QueryState(data=self._initial)


class Mutation(Generic[T]):
    """Write operation whose outcome is tracked in state."""

    def __init__(self, run: Callable[..., Awaitable[T]], name: str = "mutation") -> None:
        self._run = run
        self.name = name
        self.state: QueryState[T] = QueryState()

    async def __call__(self, *args: Any, **kwargs: Any) -> T:
        self.state.loading = True
        self.state.error = None
        try:
            data = await self._run(*args, **kwargs)
        except Exception as exc:
            error = normalize_error(exc)
            self.state.error = error
            if error is exc:
                raise
            raise error from exc
        else:
            self.state.data = data
            return data
        finally:
            self.state.loading = False

    def reset(self) -> None:
        self.state = QueryState()


class Poller:
    """Watches one assessment until it settles; unmounting stops it."""

    def __init__(self, client: QuarkfinClient, assessment_id: int | None) -> None:
        self._client = client
        self.assessment_id = assessment_id
        self.state: QueryState[Assessment] = QueryState()
        self._stop = asyncio.Event()
        self._polling = False
        self._unmounted = False

    @property
    def is_polling(self) -> bool:
        return self._polling

    def _on_update(self, snapshot: Assessment) -> None:
        self.state.data = snapshot

    async def start(self) -> QueryState[Assessment]:
        if self.assessment_id is None or self._polling or self._unmounted:
            return self.state

        self._polling = True
        self._stop.clear()
        self.state.loading = True
        self.state.error = None
        try:
            final = await self._client.poll_assessment_status(
                self.assessment_id, on_update=self._on_update, stop=self._stop
            )
            if final is not None:
                self.state.data = final
        except APIError as exc:
            self.state.error = exc
        finally:
            self.state.loading = False
            self._polling = False
        return self.state

    def stop(self) -> None:
        self._stop.set()

    def unmount(self) -> None:
        self._unmounted = True
        self.stop()


class Export:
    """Downloads a binary export and saves it under ``directory``."""

    def __init__(self, fetch: Callable[..., Awaitable[bytes]], filename: Callable[..., str]) -> None:
        self._fetch = fetch
        self._filename = filename
        self.loading = False
        self.error: APIError | None = None

    async def __call__(self, *args: Any, directory: Path | str = ".", filename: str | None = None) -> Path | None:
        self.loading = True
        self.error = None
        try:
            payload = await self._fetch(*args)
        except APIError as exc:
            self.error = exc
            return None
        finally:
            self.loading = False

        target = Path(directory) / (filename or self._filename(*args))
        target.write_bytes(payload)
        logger.info("export_saved", path=str(target), size=len(payload))
        return target


def csv_export_filename() -> str:
    return f"business-risk-assessments-{date.today().isoformat()}.csv"


def pdf_export_filename(assessment_id: str) -> str:
    return f"business-risk-assessment-{assessment_id}.pdf"


# ─── Bindings ──────────────────────────────────────────────────────────────


def use_assessments(client: QuarkfinClient, params: AssessmentListParams | None = None) -> Query[list[Assessment]]:
    return Query(lambda: client.list_assessments(params), initial=[], name="assessments")


def use_assessment(client: QuarkfinClient, assessment_id: int | None) -> Query[Assessment]:
    async def fetch() -> Assessment | None:
        if assessment_id is None:
            return None
        return await client.get_assessment(assessment_id)

    return Query(fetch, name="assessment")


def use_create_assessment(client: QuarkfinClient) -> Mutation[Assessment]:
    async def run(request: CreateAssessmentRequest) -> Assessment:
        return await client.create_assessment(request)

    return Mutation(run, name="create_assessment")


def use_assessment_polling(client: QuarkfinClient, assessment_id: int | None) -> Poller:
    return Poller(client, assessment_id)


def use_business_risk_assessments(client: QuarkfinClient) -> Query[list[BusinessRiskAssessment]]:
    return Query(client.list_business_risk_assessments, initial=[], name="business_risk_assessments")


def use_business_risk_assessment(client: QuarkfinClient, assessment_id: str | None) -> Query[BusinessRiskAssessment]:
    async def fetch() -> BusinessRiskAssessment | None:
        if assessment_id is None:
            return None
        return await client.get_business_risk_assessment(assessment_id)

    return Query(fetch, name="business_risk_assessment")


def use_create_business_risk_assessment(client: QuarkfinClient) -> Mutation[BusinessRiskAssessment]:
    async def run(request: CreateBusinessRiskAssessmentRequest) -> BusinessRiskAssessment:
        return await client.create_business_risk_assessment(request)

    return Mutation(run, name="create_business_risk_assessment")


def use_business_risk_insights(client: QuarkfinClient) -> Query[BusinessRiskInsights]:
    return Query(client.get_business_risk_insights, name="business_risk_insights")


def use_api_health(client: QuarkfinClient) -> Query:
    return Query(client.health_check, name="api_health")


def use_user_profile(client: QuarkfinClient) -> Query:
    return Query(client.get_user_profile, name="user_profile")


def use_user_credits(client: QuarkfinClient) -> Query:
    return Query(client.get_user_credits, name="user_credits")


def use_export_csv(client: QuarkfinClient) -> Export:
    return Export(client.export_business_risk_csv, csv_export_filename)


def use_export_pdf(client: QuarkfinClient) -> Export:
    return Export(client.export_business_risk_pdf, pdf_export_filename)
