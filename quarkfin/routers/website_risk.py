"""CRM-driven website-risk assessment endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from quarkfin.routers.deps import current_user, not_found
from quarkfin.schemas.business_risk import MessageResponse
from quarkfin.schemas.website_risk import (
    ManualQualificationUpdate,
    WebsiteRiskAssessmentRequest,
    WebsiteRiskAssessmentResponse,
)
from quarkfin.store import data_store

logger = structlog.get_logger()

router = APIRouter(prefix="/api/website-risk-assessment", tags=["website-risk"])


class WebsiteLookup(BaseModel):
    website: str


@router.post("/do-assessment", response_model=WebsiteRiskAssessmentResponse)
async def do_assessment(
    request: WebsiteRiskAssessmentRequest, user_id: str = Depends(current_user)
) -> WebsiteRiskAssessmentResponse:
    """Assess a website on behalf of a CRM record, replacing any earlier result."""
    data_store.count_request("POST /api/website-risk-assessment/do-assessment")
    record = data_store.upsert_website_assessment(request.model_dump(by_alias=True))
    logger.info("website_assessment_stored", website=record["website"], record_id=record["id"])
    return WebsiteRiskAssessmentResponse(status="success", website=record["website"], id=record["id"])


@router.post("/get-assessment")
async def get_assessment(request: WebsiteLookup, user_id: str = Depends(current_user)) -> dict:
    record = data_store.website_assessments.get(request.website)
    if record is None:
        raise not_found("Website assessment")
    return record


@router.post("/manual-update", response_model=MessageResponse)
async def manual_update(
    request: ManualQualificationUpdate, user_id: str = Depends(current_user)
) -> MessageResponse:
    """Record an analyst's qualification decision."""
    record = data_store.website_assessments.get(request.website)
    if record is None:
        raise not_found("Website assessment")
    record["qualification_status"] = request.qualification_status.value
    return MessageResponse(message="Qualification status updated", website=request.website)
