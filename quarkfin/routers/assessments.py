"""Website-risk assessment endpoints (API v1)."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from quarkfin.routers.deps import BackendError, current_user, not_found
from quarkfin.schemas.assessment import (
    AssessmentStatus,
    CreateAssessmentRequest,
    RiskCategory,
    UpdateAssessmentRequest,
)
from quarkfin.schemas.business_risk import BulkDeleteRequest, BulkDeleteResult, MessageResponse
from quarkfin.services import scoring
from quarkfin.store import data_store

router = APIRouter(prefix="/api/v1", tags=["assessments"])


def _owned(assessment_id: int, user_id: str) -> dict[str, Any]:
    record = data_store.assessments.get(assessment_id)
    if record is None or record["user_id"] != user_id:
        raise not_found()
    return record


@router.post("/assessments", status_code=201)
async def create_assessment(request: CreateAssessmentRequest, user_id: str = Depends(current_user)) -> dict:
    """Start a website-risk assessment; it completes as it is polled."""
    data_store.count_request("POST /api/v1/assessments")
    if not data_store.consume_credits(user_id, scoring.credits_for("Quick Scan")):
        raise BackendError(402, "Insufficient credits", "INSUFFICIENT_CREDITS")

    record = data_store.create_assessment(
        user_id, request.website, request.country_code.upper(), request.description
    )
    return data_store.assessment_view(record)


@router.get("/assessments")
async def list_assessments(
    user_id: str = Depends(current_user),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    status: AssessmentStatus | None = None,
    country_code: str | None = None,
    risk_category: RiskCategory | None = None,
) -> list[dict]:
    """List the caller's assessments, newest first."""
    records = data_store.list_assessments(user_id)
    if status is not None:
        records = [r for r in records if r["status"] == status.value]
    if country_code:
        records = [r for r in records if r["country_code"] == country_code.upper()]
    if risk_category is not None:
        records = [r for r in records if r["risk_category"] == risk_category.value]

    records.sort(key=lambda r: r["id"], reverse=True)
    return [data_store.assessment_view(r) for r in records[offset:offset + limit]]


@router.delete("/assessments/bulk", response_model=BulkDeleteResult)
async def bulk_delete(request: BulkDeleteRequest, user_id: str = Depends(current_user)) -> BulkDeleteResult:
    result = BulkDeleteResult()
    for raw_id in request.ids:
        record = data_store.assessments.get(int(raw_id)) if raw_id.isdigit() else None
        if record is not None and record["user_id"] == user_id:
            data_store.delete_assessment(record["id"])
            result.deleted.append(raw_id)
        else:
            result.not_found.append(raw_id)
    return result


@router.get("/assessments/{assessment_id}")
async def get_assessment(assessment_id: int, user_id: str = Depends(current_user)) -> dict:
    """Fetch one assessment, advancing its processing."""
    _owned(assessment_id, user_id)
    return data_store.assessment_view(data_store.read_assessment(assessment_id))


@router.put("/assessments/{assessment_id}")
async def update_assessment(
    assessment_id: int,
    request: UpdateAssessmentRequest,
    user_id: str = Depends(current_user),
) -> dict:
    record = _owned(assessment_id, user_id)
    record.update(request.model_dump(exclude_none=True))
    return data_store.assessment_view(record)


@router.delete("/assessments/{assessment_id}", response_model=MessageResponse)
async def delete_assessment(assessment_id: int, user_id: str = Depends(current_user)) -> MessageResponse:
    _owned(assessment_id, user_id)
    data_store.delete_assessment(assessment_id)
    return MessageResponse(message="Assessment deleted successfully")
