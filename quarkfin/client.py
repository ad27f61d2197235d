"""Async client for the QuarkfinAI platform REST API.

Every call is retried per ``quarkfin.retry`` and surfaces failures as
``APIError``. Calls that create backend resources are additionally
deduplicated so a double submit never creates two assessments.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, TypeVar

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from quarkfin.config import Settings, get_settings
from quarkfin.dedupe import (
    RequestDeduplicator,
    assessment_key,
    business_risk_key,
    payment_key,
    website_risk_key,
)
from quarkfin.errors import TIMEOUT_ERROR, APIError, from_response, normalize_error
from quarkfin.retry import retry
from quarkfin.schemas.assessment import (
    Assessment,
    AssessmentListParams,
    CreateAssessmentRequest,
    UpdateAssessmentRequest,
    can_transition,
)
from quarkfin.schemas.business_risk import (
    BulkDeleteResult,
    BusinessRiskAssessment,
    BusinessRiskInsights,
    CreateBusinessRiskAssessmentRequest,
    MessageResponse,
    UpdateBusinessRiskAssessmentRequest,
    changes_payload,
)
from quarkfin.schemas.envelope import is_error_envelope, unwrap_envelope
from quarkfin.schemas.health import PingResponse
from quarkfin.schemas.user import (
    PhoneVerificationResponse,
    PhoneVerificationResult,
    ProfileUpdate,
    SubscriptionPlan,
    UserCredits,
    UserProfile,
)
from quarkfin.schemas.website_risk import (
    ManualQualificationUpdate,
    PaymentRequest,
    PaymentSession,
    PaymentVerification,
    WebsiteRiskAssessmentRequest,
    WebsiteRiskAssessmentResponse,
)
from quarkfin.session import TokenSupplier

logger = structlog.get_logger()

M = TypeVar("M", bound=BaseModel)
Snapshot = TypeVar("Snapshot", Assessment, BusinessRiskAssessment)

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "X-Platform": "QuarkfinAI-Web",
}

BRP_PREFIX = "/api/business-risk-prevention"


class QuarkfinClient:
    """Typed operations over the platform backend."""

    def __init__(
        self,
        settings: Settings | None = None,
        token_supplier: TokenSupplier | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self.base_url = self.settings.resolved_api_url
        self._token_supplier = token_supplier
        self._sleep = sleep
        self._dedupe = RequestDeduplicator()
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.settings.request_timeout_seconds),
            headers=DEFAULT_HEADERS,
            transport=transport,
            event_hooks={"request": [self._on_request], "response": [self._on_response]},
        )

    async def __aenter__(self) -> QuarkfinClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    @property
    def deduplicator(self) -> RequestDeduplicator:
        return self._dedupe

    # ─── Transport plumbing ────────────────────────────────────────────────

    async def _auth_token(self) -> str | None:
        if self._token_supplier is None:
            return None
        try:
            return await self._token_supplier()
        except Exception as exc:
            # Missing credentials are reported by the backend as a 401.
            logger.warning("auth_token_unavailable", error=str(exc))
            return None

    async def _on_request(self, request: httpx.Request) -> None:
        token = await self._auth_token()
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        request.headers["X-Requested-With"] = "XMLHttpRequest"
        request.extensions["quarkfin_started"] = time.monotonic()
        logger.debug("api_request", method=request.method, path=request.url.path)

    async def _on_response(self, response: httpx.Response) -> None:
        request = response.request
        started = request.extensions.get("quarkfin_started", time.monotonic())
        logger.debug(
            "api_response",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.monotonic() - started) * 1000, 2),
        )
        if response.is_error:
            await response.aread()
            logger.warning("api_error_response", path=request.url.path, status_code=response.status_code)
            raise from_response(response)

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            return await self._http.request(method, path, json=json, params=params)
        except APIError:
            raise
        except Exception as exc:
            raise normalize_error(exc) from exc

    async def _json(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._send(method, path, **kwargs)
        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError as exc:
            raise normalize_error(exc) from exc
        if is_error_envelope(body):
            raise APIError(
                message=str(body.get("error") or body.get("message") or "API request failed"),
                code=str(body.get("code") or f"HTTP_{response.status_code}"),
                status=response.status_code,
                details=body,
            )
        return unwrap_envelope(body)

    async def _bytes(self, method: str, path: str, **kwargs: Any) -> bytes:
        response = await self._send(method, path, **kwargs)
        return response.content

    async def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        return await retry(
            lambda: self._json(method, path, **kwargs),
            max_attempts=self.settings.max_retries,
            base_delay=self.settings.retry_base_delay_seconds,
            sleep=self._sleep,
        )

    async def _call_bytes(self, method: str, path: str, **kwargs: Any) -> bytes:
        return await retry(
            lambda: self._bytes(method, path, **kwargs),
            max_attempts=self.settings.max_retries,
            base_delay=self.settings.retry_base_delay_seconds,
            sleep=self._sleep,
        )

    async def _fetch_once(self, model: type[M], path: str) -> M:
        # One request per poll attempt, never retried.
        return self._parse(model, await self._json("GET", path))

    @staticmethod
    def _parse(model: type[M], data: Any) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise normalize_error(exc) from exc

    @classmethod
    def _parse_list(cls, model: type[M], data: Any) -> list[M]:
        if data is None:
            return []
        if not isinstance(data, list):
            raise APIError(
                message=f"Expected a list of {model.__name__}",
                code="UNKNOWN_ERROR",
                details={"error": "unexpected payload shape"},
            )
        return [cls._parse(model, item) for item in data]

    # ─── Health ────────────────────────────────────────────────────────────

    async def health_check(self) -> PingResponse:
        return self._parse(PingResponse, await self._call("GET", "/ping"))

    # ─── Website-risk assessments (API v1) ─────────────────────────────────

    async def create_assessment(self, request: CreateAssessmentRequest) -> Assessment:
        key = assessment_key(request.website, request.country_code)
        data = await self._dedupe.run(
            key,
            lambda: self._call("POST", "/api/v1/assessments", json=request.model_dump(mode="json", exclude_none=True)),
        )
        return self._parse(Assessment, data)

    async def get_assessment(self, assessment_id: int) -> Assessment:
        return self._parse(Assessment, await self._call("GET", f"/api/v1/assessments/{assessment_id}"))

    async def list_assessments(self, params: AssessmentListParams | None = None, **filters: Any) -> list[Assessment]:
        """List assessments, filtered by ``params`` or by the same fields as keywords."""
        if params is None and filters:
            params = AssessmentListParams(**filters)
        query = params.to_query() if params else None
        return self._parse_list(Assessment, await self._call("GET", "/api/v1/assessments", params=query))

    async def update_assessment(
        self, assessment_id: int, changes: UpdateAssessmentRequest | dict[str, Any]
    ) -> Assessment:
        data = await self._call("PUT", f"/api/v1/assessments/{assessment_id}", json=changes_payload(changes))
        return self._parse(Assessment, data)

    async def delete_assessment(self, assessment_id: int) -> MessageResponse:
        return self._parse(MessageResponse, await self._call("DELETE", f"/api/v1/assessments/{assessment_id}"))

    async def bulk_delete_assessments(self, ids: list[int]) -> BulkDeleteResult:
        data = await self._call("DELETE", "/api/v1/assessments/bulk", json={"ids": [str(i) for i in ids]})
        return self._parse(BulkDeleteResult, data)

    async def poll_assessment_status(
        self,
        assessment_id: int,
        on_update: Callable[[Assessment], Any] | None = None,
        max_attempts: int | None = None,
        interval: float | None = None,
        stop: asyncio.Event | None = None,
    ) -> Assessment | None:
        """Fetch until the assessment reaches completed or failed.

        Returns the last snapshot early when ``stop`` is set. Raises a
        ``TIMEOUT_ERROR`` when no terminal state is seen in ``max_attempts``.
        """
        return await self._poll(
            lambda: self._fetch_once(Assessment, f"/api/v1/assessments/{assessment_id}"),
            str(assessment_id),
            on_update,
            max_attempts,
            interval,
            stop,
        )

    # ─── Business-risk prevention ──────────────────────────────────────────

    async def create_business_risk_assessment(
        self, request: CreateBusinessRiskAssessmentRequest
    ) -> BusinessRiskAssessment:
        key = business_risk_key(request.domain, request.assessment_type.value)
        data = await self._dedupe.run(
            key,
            lambda: self._call(
                "POST", f"{BRP_PREFIX}/assessments", json=request.model_dump(mode="json", exclude_none=True)
            ),
        )
        return self._parse(BusinessRiskAssessment, data)

    async def get_business_risk_assessment(self, assessment_id: str) -> BusinessRiskAssessment:
        data = await self._call("GET", f"{BRP_PREFIX}/assessments/{assessment_id}")
        return self._parse(BusinessRiskAssessment, data)

    async def list_business_risk_assessments(self) -> list[BusinessRiskAssessment]:
        return self._parse_list(BusinessRiskAssessment, await self._call("GET", f"{BRP_PREFIX}/assessments"))

    async def update_business_risk_assessment(
        self,
        assessment_id: str,
        changes: UpdateBusinessRiskAssessmentRequest | dict[str, Any],
    ) -> BusinessRiskAssessment:
        data = await self._call("PUT", f"{BRP_PREFIX}/assessments/{assessment_id}", json=changes_payload(changes))
        return self._parse(BusinessRiskAssessment, data)

    async def delete_business_risk_assessment(self, assessment_id: str) -> MessageResponse:
        data = await self._call("DELETE", f"{BRP_PREFIX}/assessments/{assessment_id}")
        return self._parse(MessageResponse, data)

    async def bulk_delete_business_risk_assessments(self, ids: list[str]) -> BulkDeleteResult:
        data = await self._call("DELETE", f"{BRP_PREFIX}/assessments/bulk", json={"ids": ids})
        return self._parse(BulkDeleteResult, data)

    async def rerun_business_risk_assessment(self, assessment_id: str) -> BusinessRiskAssessment:
        data = await self._call("POST", f"{BRP_PREFIX}/assessments/{assessment_id}/rerun")
        return self._parse(BusinessRiskAssessment, data)

    async def get_business_risk_insights(self) -> BusinessRiskInsights:
        return self._parse(BusinessRiskInsights, await self._call("GET", f"{BRP_PREFIX}/insights"))

    async def export_business_risk_csv(self) -> bytes:
        return await self._call_bytes("GET", f"{BRP_PREFIX}/export/csv")

    async def export_business_risk_pdf(self, assessment_id: str) -> bytes:
        return await self._call_bytes("GET", f"{BRP_PREFIX}/assessments/{assessment_id}/export/pdf")

    async def poll_business_risk_assessment_status(
        self,
        assessment_id: str,
        on_update: Callable[[BusinessRiskAssessment], Any] | None = None,
        max_attempts: int | None = None,
        interval: float | None = None,
        stop: asyncio.Event | None = None,
    ) -> BusinessRiskAssessment | None:
        return await self._poll(
            lambda: self._fetch_once(BusinessRiskAssessment, f"{BRP_PREFIX}/assessments/{assessment_id}"),
            assessment_id,
            on_update,
            max_attempts,
            interval,
            stop,
        )

    # ─── Account ───────────────────────────────────────────────────────────

    async def get_user_profile(self) -> UserProfile:
        return self._parse(UserProfile, await self._call("GET", "/api/auth/profile"))

    async def update_user_profile(self, changes: ProfileUpdate | dict[str, Any]) -> MessageResponse:
        data = await self._call("PUT", "/api/auth/profile", json=changes_payload(changes))
        return self._parse(MessageResponse, data)

    async def get_user_credits(self) -> UserCredits:
        return self._parse(UserCredits, await self._call("GET", "/api/auth/credits"))

    async def get_subscription_plans(self) -> list[SubscriptionPlan]:
        return self._parse_list(SubscriptionPlan, await self._call("GET", "/api/auth/plans"))

    async def send_phone_verification(self, phone: str) -> PhoneVerificationResponse:
        data = await self._call("POST", "/api/auth/send-phone-verification", json={"phone": phone})
        return self._parse(PhoneVerificationResponse, data)

    async def verify_phone_code(self, phone: str, code: str) -> PhoneVerificationResult:
        data = await self._call("POST", "/api/auth/verify-phone-code", json={"phone": phone, "code": code})
        return self._parse(PhoneVerificationResult, data)

    # ─── CRM website-risk flow ─────────────────────────────────────────────

    async def do_website_risk_assessment(
        self, request: WebsiteRiskAssessmentRequest
    ) -> WebsiteRiskAssessmentResponse:
        key = website_risk_key(request.website, request.record_id)
        data = await self._dedupe.run(
            key,
            lambda: self._call(
                "POST",
                "/api/website-risk-assessment/do-assessment",
                json=request.model_dump(mode="json", by_alias=True, exclude_none=True),
            ),
        )
        return self._parse(WebsiteRiskAssessmentResponse, data)

    async def get_website_risk_assessment(self, website: str) -> dict[str, Any]:
        data = await self._call("POST", "/api/website-risk-assessment/get-assessment", json={"website": website})
        return data or {}

    async def update_manual_qualification(self, update: ManualQualificationUpdate) -> MessageResponse:
        data = await self._call(
            "POST", "/api/website-risk-assessment/manual-update", json=update.model_dump(mode="json")
        )
        return self._parse(MessageResponse, data)

    # ─── Payments ──────────────────────────────────────────────────────────

    async def create_payment(self, request: PaymentRequest) -> PaymentSession:
        key = payment_key(request.plan_id, request.billing_cycle.value)
        data = await self._dedupe.run(
            key,
            lambda: self._call("POST", "/api/payments/create", json=request.model_dump(mode="json")),
        )
        return self._parse(PaymentSession, data)

    async def verify_payment(self, order_id: str) -> PaymentVerification:
        data = await self._call("POST", "/api/payments/verify", json={"order_id": order_id})
        return self._parse(PaymentVerification, data)

    # ─── Polling ───────────────────────────────────────────────────────────

    async def _poll(
        self,
        fetch: Callable[[], Awaitable[Snapshot]],
        entity_id: str,
        on_update: Callable[[Snapshot], Any] | None,
        max_attempts: int | None,
        interval: float | None,
        stop: asyncio.Event | None,
    ) -> Snapshot | None:
        if max_attempts is None:
            max_attempts = self.settings.poll_max_attempts
        if interval is None:
            interval = self.settings.poll_interval_seconds

        last: Snapshot | None = None
        for attempt in range(1, max_attempts + 1):
            if stop is not None and stop.is_set():
                logger.info("polling_stopped", assessment_id=entity_id, attempt=attempt)
                return last

            try:
                snapshot = await fetch()
            except APIError as exc:
                logger.warning(
                    "polling_fetch_failed",
                    assessment_id=entity_id,
                    attempt=attempt,
                    code=exc.code,
                    status=exc.status,
                )
            else:
                if last is not None and not can_transition(last.status, snapshot.status):
                    logger.warning(
                        "polling_status_regressed",
                        assessment_id=entity_id,
                        previous=last.status.value,
                        current=snapshot.status.value,
                    )
                last = snapshot
                if on_update is not None:
                    result = on_update(snapshot)
                    if inspect.isawaitable(result):
                        await result
                if snapshot.is_terminal:
                    logger.info(
                        "polling_finished",
                        assessment_id=entity_id,
                        attempt=attempt,
                        status=snapshot.status.value,
                    )
                    return snapshot

            if attempt < max_attempts:
                await self._sleep(interval)

        raise APIError(
            message=f"Assessment {entity_id} did not finish after {max_attempts} status checks",
            code=TIMEOUT_ERROR,
            status=0,
            details={"assessment_id": entity_id, "attempts": max_attempts},
        )
