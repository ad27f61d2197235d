"""Account endpoints: profile, credits, plans and phone verification."""

from __future__ import annotations

import re

import structlog
from fastapi import APIRouter, Depends

from quarkfin.routers.deps import BackendError, current_user
from quarkfin.schemas.business_risk import MessageResponse
from quarkfin.schemas.user import (
    PhoneVerificationRequest,
    PhoneVerificationResponse,
    PhoneVerificationResult,
    ProfileUpdate,
    SubscriptionPlan,
    UserCredits,
    UserProfile,
    VerifyPhoneCodeRequest,
)
from quarkfin.store import SUBSCRIPTION_PLANS, data_store

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["auth"])

# E.164: leading +, country code, up to 15 digits in total
PHONE_PATTERN = re.compile(r"^\+[1-9]\d{6,14}$")


@router.get("/profile", response_model=UserProfile)
async def get_profile(user_id: str = Depends(current_user)) -> dict:
    return data_store.profile_view(user_id)


@router.put("/profile", response_model=MessageResponse)
async def update_profile(request: ProfileUpdate, user_id: str = Depends(current_user)) -> MessageResponse:
    changes = request.model_dump(mode="json", exclude_none=True)
    if "phone" in changes and changes["phone"] != data_store.profiles[user_id].get("phone"):
        changes["phone_verified"] = False
    data_store.update_profile(user_id, changes)
    return MessageResponse(message="Profile updated successfully")


@router.get("/credits", response_model=UserCredits)
async def get_credits(user_id: str = Depends(current_user)) -> dict:
    return data_store.credits[user_id]


@router.get("/plans", response_model=list[SubscriptionPlan])
async def list_plans() -> list[dict]:
    """Available plans. Public."""
    return SUBSCRIPTION_PLANS


@router.post("/send-phone-verification", response_model=PhoneVerificationResponse)
async def send_phone_verification(
    request: PhoneVerificationRequest, user_id: str = Depends(current_user)
) -> PhoneVerificationResponse:
    """Issue a six-digit code for the given phone number."""
    phone = request.phone.strip()
    if not PHONE_PATTERN.match(phone):
        raise BackendError(400, "Phone number must be in E.164 format", "INVALID_PHONE_FORMAT")
    if data_store.phone_in_use(phone, user_id):
        raise BackendError(409, "Phone number is already verified by another account", "PHONE_ALREADY_IN_USE")

    record = data_store.start_phone_verification(user_id, phone)
    # The development backend has no SMS gateway; the code only goes to the log.
    logger.info("phone_verification_sent", user_id=user_id, code=record["code"])
    return PhoneVerificationResponse(
        message="Verification code sent",
        code_sent=True,
        expires_at=record["expires_at"],
    )


@router.post("/verify-phone-code", response_model=PhoneVerificationResult)
async def verify_phone_code(
    request: VerifyPhoneCodeRequest, user_id: str = Depends(current_user)
) -> PhoneVerificationResult:
    """Confirm the code; a verified phone completes onboarding."""
    phone = request.phone.strip()
    if not data_store.check_phone_code(user_id, phone, request.code):
        raise BackendError(400, "Invalid or expired verification code", "INVALID_CODE")

    data_store.update_profile(user_id, {"phone": phone, "phone_verified": True, "onboarding_completed": True})
    logger.info("phone_verified", user_id=user_id)
    return PhoneVerificationResult(
        message="Phone number verified successfully",
        phone_verified=True,
        onboarding_completed=True,
    )
