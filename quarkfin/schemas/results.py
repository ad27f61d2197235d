"""Typed assessment result payloads.

The backend stores result blobs without a type tag. ``parse_result``
recognises the shapes the backend is known to produce and tags them;
anything else is kept verbatim as an ``UnparsedResult``.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError


class Findings(BaseModel):
    """Counts of findings raised by an assessment."""

    critical_issues: int = 0
    warnings: int = 0
    recommendations: int = 0


class MCCDetails(BaseModel):
    mcc_code: str = ""
    description: str | None = None
    mcc_restricted: bool = False


class WebsiteRiskResult(BaseModel):
    """Result of the website-risk scraper pipeline."""

    kind: Literal["website_risk"] = "website_risk"
    risk_breakdown: dict[str, int]
    risk_score: float | None = None
    risk_category: str | None = None
    qualification_status: str | None = None
    mcc_details: MCCDetails | None = None
    https_check: dict[str, Any] | None = None
    social_presence: dict[str, Any] | None = None
    whois: dict[str, Any] | None = None
    urlvoid: dict[str, Any] | None = None

    model_config = {"extra": "allow"}


class BusinessRiskResult(BaseModel):
    """Result of a business-risk assessment run."""

    kind: Literal["business_risk"] = "business_risk"
    findings: Findings
    risk_score: float | None = None
    risk_category: str | None = None
    assessment_type: str | None = None
    risk_factors: dict[str, float] = Field(default_factory=dict)

    model_config = {"extra": "allow"}


class UnparsedResult(BaseModel):
    """A payload of unknown shape, passed through untouched."""

    kind: Literal["unparsed"] = "unparsed"
    raw: Any = None


AssessmentResult = Annotated[
    Union[WebsiteRiskResult, BusinessRiskResult, UnparsedResult],
    Field(discriminator="kind"),
]

_result_adapter: TypeAdapter[Any] = TypeAdapter(AssessmentResult)

# Shape markers, checked in order.
_SHAPES: list[tuple[str, str]] = [
    ("risk_breakdown", "website_risk"),
    ("findings", "business_risk"),
]


def parse_result(payload: Any) -> WebsiteRiskResult | BusinessRiskResult | UnparsedResult | None:
    """Tag and validate a raw result payload."""
    if payload is None:
        return None
    if isinstance(payload, (WebsiteRiskResult, BusinessRiskResult, UnparsedResult)):
        return payload
    if not isinstance(payload, dict):
        return UnparsedResult(raw=payload)

    if "kind" in payload:
        try:
            return _result_adapter.validate_python(payload)
        except ValidationError:
            return UnparsedResult(raw=payload)

    for marker, kind in _SHAPES:
        if marker in payload:
            try:
                return _result_adapter.validate_python({**payload, "kind": kind})
            except ValidationError:
                break
    return UnparsedResult(raw=payload)
