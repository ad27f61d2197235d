"""Schemas for user profiles, credits, plans and phone verification."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class CompanySize(str, Enum):
    STARTUP = "startup"
    SMALL = "small"
    MEDIUM = "medium"
    ENTERPRISE = "enterprise"


COMPANY_SIZE_LABELS = {
    CompanySize.STARTUP: "Startup (1-10 employees)",
    CompanySize.SMALL: "Small (11-50 employees)",
    CompanySize.MEDIUM: "Medium (51-200 employees)",
    CompanySize.ENTERPRISE: "Enterprise (200+ employees)",
}


def is_valid_company_size(size: str) -> bool:
    return size in {s.value for s in CompanySize}


class SubscriptionPlan(BaseModel):
    """A purchasable plan and its monthly credit allocation."""

    id: int
    plan_name: str
    plan_type: str = "free"
    monthly_credits: int
    yearly_credits: int | None = None
    monthly_price: float
    yearly_price: float | None = None
    overage_price_per_credit: float = 0.0
    features: list[str] = Field(default_factory=list)
    is_active: bool = True


class UserCredits(BaseModel):
    """Credit counters. Mutated by the backend only."""

    user_id: str
    monthly_allocation: int = 0
    subscription_credits: int = 0
    recharged_credits: int = 0
    bonus_credits: int = 0
    used_credits: int = 0
    total_credits: int = 0
    available_credits: int = 0
    last_reset_date: datetime | None = None
    next_reset_date: datetime | None = None


class UserProfile(BaseModel):
    """Identity, organisation and plan attributes of the signed-in user."""

    id: str
    email: str
    full_name: str = ""
    phone: str | None = None
    company_name: str | None = None
    company_size: CompanySize | None = None
    industry: str | None = None
    country: str | None = None
    timezone: str | None = None
    phone_verified: bool = False
    email_verified: bool = False
    onboarding_completed: bool = False
    signup_method: str = "email"
    status: str = "active"
    current_plan: SubscriptionPlan | None = None
    credits: UserCredits | None = None

    def for_settings(self) -> UserProfile:
        """Copy with blank strings in place of missing optional text fields."""
        return self.model_copy(
            update={
                "phone": self.phone or "",
                "company_name": self.company_name or "",
                "industry": self.industry or "",
                "country": self.country or "",
            }
        )


class ProfileUpdate(BaseModel):
    """Fields the user may change on their profile."""

    full_name: str | None = None
    phone: str | None = None
    company_name: str | None = None
    company_size: CompanySize | None = None
    industry: str | None = None
    country: str | None = None
    timezone: str | None = None


class PhoneVerificationRequest(BaseModel):
    phone: str


class VerifyPhoneCodeRequest(BaseModel):
    phone: str
    code: str = Field(..., min_length=6, max_length=6)


class PhoneVerificationResponse(BaseModel):
    message: str
    code_sent: bool
    expires_at: datetime


class PhoneVerificationResult(BaseModel):
    message: str
    phone_verified: bool
    onboarding_completed: bool
