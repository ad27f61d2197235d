"""Business-risk prevention endpoints."""

from __future__ import annotations

from datetime import date
from typing import Any

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import Response

from quarkfin.routers.deps import BackendError, current_user, not_found
from quarkfin.schemas.business_risk import (
    BulkDeleteRequest,
    BulkDeleteResult,
    BusinessRiskInsights,
    CreateBusinessRiskAssessmentRequest,
    MessageResponse,
    UpdateBusinessRiskAssessmentRequest,
)
from quarkfin.services import scoring
from quarkfin.store import data_store

logger = structlog.get_logger()

router = APIRouter(prefix="/api/business-risk-prevention", tags=["business-risk"])


def _owned(assessment_id: str, user_id: str, advance: bool = True) -> dict[str, Any]:
    if advance:
        record = data_store.read_business_assessment(assessment_id)
    else:
        record = data_store.business_assessments.get(assessment_id)
    if record is None or record["user_id"] != user_id:
        raise not_found()
    return record


def _views(user_id: str) -> list[dict[str, Any]]:
    records = list(reversed(data_store.list_business_assessments(user_id)))
    return [data_store.business_view(r) for r in records]


def _start(user_id: str, data: dict[str, Any]) -> dict[str, Any]:
    credits = scoring.credits_for(data.get("assessment_type") or "Quick Scan")
    if not data_store.consume_credits(user_id, credits):
        raise BackendError(
            402,
            "Insufficient credits",
            "INSUFFICIENT_CREDITS",
            details={"required": credits, "available": data_store.credits[user_id]["available_credits"]},
        )
    record = data_store.create_business_assessment(user_id, data)
    logger.info(
        "business_assessment_created",
        assessment_id=record["id"],
        domain=record["domain"],
        assessment_type=record["assessment_type"],
        credits=credits,
    )
    return record


@router.post("/assessments", status_code=201)
async def create_assessment(
    request: CreateBusinessRiskAssessmentRequest, user_id: str = Depends(current_user)
) -> dict:
    """Start an assessment, charging its credits up front."""
    data_store.count_request("POST /api/business-risk-prevention/assessments")
    record = _start(user_id, request.model_dump(mode="json"))
    return data_store.business_view(record)


@router.get("/assessments")
async def list_assessments(user_id: str = Depends(current_user)) -> list[dict]:
    return _views(user_id)


@router.delete("/assessments/bulk", response_model=BulkDeleteResult)
async def bulk_delete(request: BulkDeleteRequest, user_id: str = Depends(current_user)) -> BulkDeleteResult:
    """Delete several assessments; ids the caller does not own count as not found."""
    result = BulkDeleteResult()
    for assessment_id in request.ids:
        record = data_store.business_assessments.get(assessment_id)
        if record is not None and record["user_id"] == user_id:
            data_store.delete_business_assessment(assessment_id)
            result.deleted.append(assessment_id)
        else:
            result.not_found.append(assessment_id)
    return result


@router.get("/assessments/{assessment_id}")
async def get_assessment(assessment_id: str, user_id: str = Depends(current_user)) -> dict:
    return data_store.business_view(_owned(assessment_id, user_id))


@router.put("/assessments/{assessment_id}")
async def update_assessment(
    assessment_id: str,
    request: UpdateBusinessRiskAssessmentRequest,
    user_id: str = Depends(current_user),
) -> dict:
    record = _owned(assessment_id, user_id, advance=False)
    record.update(request.model_dump(exclude_none=True))
    return data_store.business_view(record)


@router.delete("/assessments/{assessment_id}", response_model=MessageResponse)
async def delete_assessment(assessment_id: str, user_id: str = Depends(current_user)) -> MessageResponse:
    _owned(assessment_id, user_id, advance=False)
    data_store.delete_business_assessment(assessment_id)
    return MessageResponse(message="Assessment deleted successfully")


@router.post("/assessments/{assessment_id}/rerun", status_code=201)
async def rerun_assessment(assessment_id: str, user_id: str = Depends(current_user)) -> dict:
    """Run the same business again as a fresh assessment."""
    original = _owned(assessment_id, user_id, advance=False)
    record = _start(user_id, original)
    return data_store.business_view(record)


@router.get("/insights", response_model=BusinessRiskInsights)
async def get_insights(user_id: str = Depends(current_user)) -> BusinessRiskInsights:
    return BusinessRiskInsights.model_validate(scoring.build_insights(_views(user_id)))


@router.get("/export/csv")
async def export_csv(user_id: str = Depends(current_user)) -> Response:
    filename = f"business-risk-assessments-{date.today().isoformat()}.csv"
    return Response(
        content=scoring.render_csv(_views(user_id)),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/assessments/{assessment_id}/export/pdf")
async def export_pdf(assessment_id: str, user_id: str = Depends(current_user)) -> Response:
    view = data_store.business_view(_owned(assessment_id, user_id, advance=False))
    return Response(
        content=scoring.render_report(view).encode("utf-8"),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="business-risk-assessment-{assessment_id}.pdf"'},
    )
