"""Plan purchase endpoints."""

from __future__ import annotations

import uuid

import structlog
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from quarkfin.routers.deps import BackendError, current_user, not_found
from quarkfin.schemas.website_risk import BillingCycle, PaymentRequest, PaymentSession, PaymentVerification
from quarkfin.store import SUBSCRIPTION_PLANS, data_store

logger = structlog.get_logger()

router = APIRouter(prefix="/api/payments", tags=["payments"])


class VerifyPaymentRequest(BaseModel):
    order_id: str


def _plan_credits(plan_id: str, billing_cycle: BillingCycle) -> int:
    for plan in SUBSCRIPTION_PLANS:
        if str(plan["id"]) == plan_id and plan["plan_type"] == "paid":
            if billing_cycle == BillingCycle.YEARLY and plan.get("yearly_credits"):
                return plan["yearly_credits"]
            return plan["monthly_credits"]
    raise BackendError(400, f"Unknown plan: {plan_id}", "INVALID_PLAN")


@router.post("/create", response_model=PaymentSession)
async def create_payment(
    request: PaymentRequest, http_request: Request, user_id: str = Depends(current_user)
) -> PaymentSession:
    """Open a checkout session for a paid plan."""
    data_store.count_request("POST /api/payments/create")
    credits = _plan_credits(request.plan_id, request.billing_cycle)
    order_id = f"order_{uuid.uuid4().hex[:16]}"
    data_store.payments[order_id] = {
        "user_id": user_id,
        "plan_id": request.plan_id,
        "billing_cycle": request.billing_cycle.value,
        "credits": credits,
        "status": "created",
    }
    platform_url = http_request.app.state.settings.platform_url.rstrip("/")
    logger.info("payment_created", order_id=order_id, plan_id=request.plan_id)
    return PaymentSession(payment_url=f"{platform_url}/checkout/{order_id}", order_id=order_id)


@router.post("/verify", response_model=PaymentVerification)
async def verify_payment(request: VerifyPaymentRequest, user_id: str = Depends(current_user)) -> PaymentVerification:
    """Confirm an order and credit the plan's allocation once."""
    payment = data_store.payments.get(request.order_id)
    if payment is None or payment["user_id"] != user_id:
        raise not_found("Order")

    if payment["status"] != "paid":
        data_store.add_credits(user_id, payment["credits"])
        payment["status"] = "paid"
        logger.info("payment_verified", order_id=request.order_id, credits=payment["credits"])
    return PaymentVerification(status=payment["status"], credits_added=payment["credits"])
