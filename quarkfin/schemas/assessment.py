"""Schemas for website-risk assessments (API v1)."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from quarkfin.schemas.business_risk import BusinessRiskStatus
from quarkfin.schemas.results import AssessmentResult, parse_result


class AssessmentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (AssessmentStatus.COMPLETED, AssessmentStatus.FAILED)


_STATUS_RANK = {
    AssessmentStatus.PENDING: 0,
    AssessmentStatus.PROCESSING: 1,
    AssessmentStatus.COMPLETED: 2,
    AssessmentStatus.FAILED: 2,
}


def can_transition(
    old: AssessmentStatus | BusinessRiskStatus, new: AssessmentStatus | BusinessRiskStatus
) -> bool:
    """Whether a status may follow another: forward only, terminal states are final."""
    if old.is_terminal:
        return new == old
    return new.rank >= old.rank


class RiskCategory(str, Enum):
    LOW = "low_risk"
    MEDIUM = "med_risk"
    HIGH = "high_risk"

    @property
    def label(self) -> str:
        return _RISK_LABELS[self]


_RISK_LABELS = {
    RiskCategory.LOW: "Low Risk",
    RiskCategory.MEDIUM: "Medium Risk",
    RiskCategory.HIGH: "High Risk",
}


def risk_category_label(category: str | None) -> str:
    """Human label for a backend risk category code."""
    try:
        return RiskCategory(category).label
    except ValueError:
        return "Unknown"


class CreateAssessmentRequest(BaseModel):
    """Request to start a website-risk assessment."""

    website: str = Field(..., min_length=1)
    country_code: str = Field(..., min_length=2, max_length=2)
    description: str | None = None


class Assessment(BaseModel):
    """A website-risk assessment as reported by the backend."""

    id: int
    website: str
    country_code: str
    description: str | None = None
    status: AssessmentStatus
    risk_category: RiskCategory | None = None
    risk_score: float | None = None
    results: AssessmentResult | None = None
    created_at: datetime
    updated_at: datetime

    @field_validator("results", mode="before")
    @classmethod
    def _tag_results(cls, value: Any) -> Any:
        parsed = parse_result(value)
        return parsed.model_dump() if parsed is not None else None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class UpdateAssessmentRequest(BaseModel):
    """Editable fields of a website-risk assessment."""

    description: str | None = None


class AssessmentListParams(BaseModel):
    """Filters accepted by the assessment listing endpoint."""

    limit: int | None = Field(default=None, ge=1)
    offset: int | None = Field(default=None, ge=0)
    status: AssessmentStatus | None = None
    country_code: str | None = None
    risk_category: RiskCategory | None = None

    def to_query(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
