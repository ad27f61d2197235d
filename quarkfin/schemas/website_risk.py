"""Schemas for the website-risk (CRM-driven) assessment flow and payments."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class WebsiteRiskAssessmentRequest(BaseModel):
    """Assessment request as sent by the CRM integration; keys use CRM field names."""

    model_config = ConfigDict(populate_by_name=True)

    website: str = Field(..., alias="Website", min_length=1)
    record_id: str = Field(..., alias="Id", min_length=1)
    billing_country_code: str = Field(..., alias="BillingCountryCode", min_length=2)
    description: str | None = Field(default=None, alias="Description")
    annual_revenue: str | None = Field(default=None, alias="Annual_Revenue__c")
    sic_code: str | None = Field(default=None, alias="CB_SIC_Code__c")
    pay_method: str | None = Field(default=None, alias="CB_Pay_Method__c")


class WebsiteRiskAssessmentResponse(BaseModel):
    status: str
    website: str
    id: str


class QualificationStatus(str, Enum):
    QUALIFIED = "Qualified"
    NOT_QUALIFIED = "Not Qualified"


class ManualQualificationUpdate(BaseModel):
    website: str
    qualification_status: QualificationStatus


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class PaymentRequest(BaseModel):
    plan_id: str
    billing_cycle: BillingCycle = BillingCycle.MONTHLY


class PaymentSession(BaseModel):
    payment_url: str
    order_id: str


class PaymentVerification(BaseModel):
    status: str
    credits_added: int
