"""Schemas for business-risk prevention assessments."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from quarkfin.schemas.results import Findings

INDUSTRIES = [
    "Technology",
    "Healthcare",
    "Financial Services",
    "Retail",
    "Manufacturing",
    "Education",
    "Real Estate",
    "Transportation",
    "Energy",
    "Media",
    "Telecommunications",
    "Agriculture",
    "Construction",
    "Professional Services",
    "Government",
    "Non-profit",
    "Other",
]

SUPPORTED_COUNTRIES = {
    "US": "United States",
    "CA": "Canada",
    "GB": "United Kingdom",
    "AU": "Australia",
    "DE": "Germany",
    "FR": "France",
    "NL": "Netherlands",
    "SE": "Sweden",
    "NO": "Norway",
    "DK": "Denmark",
    "FI": "Finland",
    "CH": "Switzerland",
    "AT": "Austria",
    "BE": "Belgium",
    "IE": "Ireland",
    "LU": "Luxembourg",
    "SG": "Singapore",
    "HK": "Hong Kong",
    "JP": "Japan",
    "KR": "South Korea",
    "NZ": "New Zealand",
}


def check_industry(value: str) -> str:
    if value not in INDUSTRIES:
        raise ValueError(f"industry must be one of: {', '.join(INDUSTRIES)}")
    return value


def check_geography(value: str) -> str:
    code = value.upper()
    if code not in SUPPORTED_COUNTRIES:
        raise ValueError(f"unsupported country code: {value}")
    return code


class AssessmentType(str, Enum):
    COMPREHENSIVE = "Comprehensive"
    QUICK_SCAN = "Quick Scan"


class BusinessRiskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    FAILED = "Failed"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (BusinessRiskStatus.COMPLETED, BusinessRiskStatus.FAILED)


_STATUS_RANK = {
    BusinessRiskStatus.PENDING: 0,
    BusinessRiskStatus.IN_PROGRESS: 1,
    BusinessRiskStatus.COMPLETED: 2,
    BusinessRiskStatus.FAILED: 2,
}


class RiskLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    PENDING = "Pending"


class CreateBusinessRiskAssessmentRequest(BaseModel):
    """Request to start a business-risk assessment."""

    business_name: str = Field(..., min_length=1)
    domain: str = Field(..., min_length=1)
    industry: str = "Technology"
    geography: str = "US"
    assessment_type: AssessmentType = AssessmentType.QUICK_SCAN
    description: str | None = None

    @field_validator("industry")
    @classmethod
    def _check_industry(cls, value: str) -> str:
        return check_industry(value)

    @field_validator("geography")
    @classmethod
    def _check_geography(cls, value: str) -> str:
        return check_geography(value)


class UpdateBusinessRiskAssessmentRequest(BaseModel):
    """Editable fields of an existing assessment."""

    business_name: str | None = None
    industry: str | None = None
    geography: str | None = None
    description: str | None = None

    @field_validator("industry")
    @classmethod
    def _check_industry(cls, value: str | None) -> str | None:
        return None if value is None else check_industry(value)

    @field_validator("geography")
    @classmethod
    def _check_geography(cls, value: str | None) -> str | None:
        return None if value is None else check_geography(value)


class BulkDeleteRequest(BaseModel):
    ids: list[str] = Field(..., min_length=1)


class BulkDeleteResult(BaseModel):
    deleted: list[str] = Field(default_factory=list)
    not_found: list[str] = Field(default_factory=list)


class BusinessRiskAssessment(BaseModel):
    """A business-risk assessment as reported by the backend."""

    id: str
    business_name: str
    domain: str
    industry: str
    geography: str
    assessment_type: AssessmentType
    status: BusinessRiskStatus
    risk_level: RiskLevel = RiskLevel.PENDING
    risk_score: float = 0.0
    findings: Findings = Field(default_factory=Findings)
    date_created: datetime
    last_updated: datetime
    description: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class RiskTrend(BaseModel):
    month: str
    score: float


class RiskCategoryStat(BaseModel):
    category: str
    count: int
    percentage: float


class BusinessRiskInsights(BaseModel):
    """Aggregate view over a user's assessments."""

    total_assessments: int = 0
    high_risk_businesses: int = 0
    average_risk_score: float = 0.0
    risk_trends: list[RiskTrend] = Field(default_factory=list)
    top_risk_categories: list[RiskCategoryStat] = Field(default_factory=list)
    success_rate: float | None = None
    processing_time_avg: float | None = None


class MessageResponse(BaseModel):
    message: str

    model_config = {"extra": "allow"}


def changes_payload(changes: BaseModel | dict[str, Any]) -> dict[str, Any]:
    """JSON body for a partial update, dropping unset fields."""
    if isinstance(changes, BaseModel):
        return changes.model_dump(mode="json", exclude_none=True)
    return {k: v for k, v in changes.items() if v is not None}
