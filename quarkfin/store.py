"""In-memory data store for the development backend.

Holds users, credits and assessments for the stub API. Assessment records
advance through their lifecycle as they are read, one step per read once
the configured number of processing reads has passed, and never move
backwards.
"""

from __future__ import annotations

import hashlib
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from quarkfin.services import scoring
from quarkfin.session import DEV_TOKEN

DEV_USER_ID = "dev-user"

PHONE_CODE_TTL = timedelta(minutes=10)

# Domains under this TLD always fail processing.
FAILING_TLD = ".invalid"

SUBSCRIPTION_PLANS: list[dict[str, Any]] = [
    {
        "id": 1,
        "plan_name": "Free",
        "plan_type": "free",
        "monthly_credits": 10,
        "monthly_price": 0.0,
        "overage_price_per_credit": 0.0,
        "features": ["Quick Scan assessments", "CSV export"],
    },
    {
        "id": 2,
        "plan_name": "Startup",
        "plan_type": "paid",
        "monthly_credits": 100,
        "yearly_credits": 1200,
        "monthly_price": 49.0,
        "yearly_price": 490.0,
        "overage_price_per_credit": 0.5,
        "features": ["Comprehensive assessments", "PDF reports", "Insights"],
    },
    {
        "id": 3,
        "plan_name": "Pro",
        "plan_type": "paid",
        "monthly_credits": 500,
        "yearly_credits": 6000,
        "monthly_price": 199.0,
        "yearly_price": 1990.0,
        "overage_price_per_credit": 0.4,
        "features": ["Everything in Startup", "API access", "Priority support"],
    },
    {
        "id": 4,
        "plan_name": "Enterprise",
        "plan_type": "paid",
        "monthly_credits": 5000,
        "monthly_price": 999.0,
        "overage_price_per_credit": 0.25,
        "features": ["Everything in Pro", "Dedicated support", "Custom integrations"],
    },
]

BRP_STATUS = {
    "pending": "Pending",
    "processing": "In Progress",
    "completed": "Completed",
    "failed": "Failed",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def user_id_for_token(token: str) -> str:
    if token == DEV_TOKEN:
        return DEV_USER_ID
    return "user-" + hashlib.sha256(token.encode("utf-8")).hexdigest()[:12]


class DataStore:
    """In-memory state of the development backend."""

    def __init__(self, processing_polls: int = 2, initial_credits: int = 10) -> None:
        self.processing_polls = processing_polls
        self.initial_credits = initial_credits
        self.profiles: dict[str, dict[str, Any]] = {}
        self.credits: dict[str, dict[str, Any]] = {}
        self.assessments: dict[int, dict[str, Any]] = {}
        self.business_assessments: dict[str, dict[str, Any]] = {}
        self.website_assessments: dict[str, dict[str, Any]] = {}
        self.phone_verifications: dict[str, dict[str, Any]] = {}
        self.payments: dict[str, dict[str, Any]] = {}
        self.request_counts: dict[str, int] = {}
        self._next_assessment_id = 1

    def reset(self) -> None:
        """Clear all data."""
        self.__init__(self.processing_polls, self.initial_credits)

    def configure(self, processing_polls: int, initial_credits: int) -> None:
        self.processing_polls = processing_polls
        self.initial_credits = initial_credits

    def count_request(self, route: str) -> None:
        self.request_counts[route] = self.request_counts.get(route, 0) + 1

    # ─── Users ─────────────────────────────────────────────────────────────

    def ensure_user(self, user_id: str) -> dict[str, Any]:
        """Return the user's profile, provisioning a fresh account on first sight."""
        if user_id not in self.profiles:
            now = _now()
            self.profiles[user_id] = {
                "id": user_id,
                "email": f"{user_id}@example.com",
                "full_name": "",
                "phone": None,
                "company_name": None,
                "company_size": None,
                "industry": None,
                "country": None,
                "timezone": None,
                "phone_verified": False,
                "email_verified": True,
                "onboarding_completed": False,
                "signup_method": "email",
                "status": "active",
                "created_at": now,
                "updated_at": now,
            }
            self.credits[user_id] = {
                "user_id": user_id,
                "monthly_allocation": self.initial_credits,
                "subscription_credits": self.initial_credits,
                "recharged_credits": 0,
                "bonus_credits": 0,
                "used_credits": 0,
                "total_credits": self.initial_credits,
                "available_credits": self.initial_credits,
                "last_reset_date": now,
                "next_reset_date": now + timedelta(days=30),
            }
        return self.profiles[user_id]

    def profile_view(self, user_id: str) -> dict[str, Any]:
        profile = dict(self.ensure_user(user_id))
        profile["credits"] = self.credits[user_id]
        profile["current_plan"] = SUBSCRIPTION_PLANS[0]
        return profile

    def update_profile(self, user_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        profile = self.ensure_user(user_id)
        profile.update(changes)
        profile["updated_at"] = _now()
        return profile

    def consume_credits(self, user_id: str, amount: int) -> bool:
        """Deduct credits; False when the balance is too low."""
        credits = self.credits[user_id]
        if credits["available_credits"] < amount:
            return False
        credits["available_credits"] -= amount
        credits["used_credits"] += amount
        return True

    def add_credits(self, user_id: str, amount: int) -> None:
        credits = self.credits[user_id]
        credits["recharged_credits"] += amount
        credits["total_credits"] += amount
        credits["available_credits"] += amount

    def start_phone_verification(self, user_id: str, phone: str) -> dict[str, Any]:
        record = {
            "phone": phone,
            "code": f"{secrets.randbelow(900000) + 100000}",
            "expires_at": _now() + PHONE_CODE_TTL,
        }
        self.phone_verifications[user_id] = record
        return record

    def phone_in_use(self, phone: str, user_id: str) -> bool:
        return any(
            p.get("phone") == phone and p.get("phone_verified") and uid != user_id
            for uid, p in self.profiles.items()
        )

    def check_phone_code(self, user_id: str, phone: str, code: str) -> bool:
        record = self.phone_verifications.get(user_id)
        if record is None or record["phone"] != phone or record["code"] != code:
            return False
        if _now() >= record["expires_at"]:
            return False
        del self.phone_verifications[user_id]
        return True

    # ─── Website-risk assessments (API v1) ─────────────────────────────────

    def create_assessment(self, user_id: str, website: str, country_code: str, description: str | None) -> dict[str, Any]:
        now = _now()
        record = {
            "id": self._next_assessment_id,
            "user_id": user_id,
            "website": website,
            "country_code": country_code,
            "description": description,
            "status": "pending",
            "risk_category": None,
            "risk_score": None,
            "results": None,
            "created_at": now,
            "updated_at": now,
            "reads": 0,
        }
        self.assessments[record["id"]] = record
        self._next_assessment_id += 1
        return record

    def read_assessment(self, assessment_id: int) -> dict[str, Any] | None:
        """Fetch an assessment, advancing its lifecycle by one read."""
        record = self.assessments.get(assessment_id)
        if record is None:
            return None
        record["reads"] += 1
        self._advance(record, record["website"], "Quick Scan")
        return record

    def list_assessments(self, user_id: str) -> list[dict[str, Any]]:
        return [a for a in self.assessments.values() if a["user_id"] == user_id]

    def delete_assessment(self, assessment_id: int) -> bool:
        return self.assessments.pop(assessment_id, None) is not None

    def _advance(self, record: dict[str, Any], domain: str, assessment_type: str) -> None:
        status = record["status"]
        if status in ("completed", "failed"):
            return

        if status == "pending":
            record["status"] = "processing"
        if record["reads"] <= self.processing_polls:
            record["updated_at"] = _now()
            return

        if domain.endswith(FAILING_TLD):
            record["status"] = "failed"
            record["updated_at"] = _now()
            return

        score = scoring.generate_risk_score(domain, assessment_type)
        category = scoring.risk_category(score)
        record["status"] = "completed"
        record["risk_score"] = score
        record["risk_category"] = category
        record["updated_at"] = _now()
        if "findings" in record:
            record["findings"] = scoring.findings_for(score, assessment_type)
            record["risk_factors"] = scoring.risk_factors(score)
        else:
            record["results"] = {
                "risk_breakdown": scoring.risk_breakdown(score),
                "risk_score": score,
                "risk_category": category,
            }

    # ─── Business-risk assessments ─────────────────────────────────────────

    def create_business_assessment(self, user_id: str, data: dict[str, Any]) -> dict[str, Any]:
        now = _now()
        record = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "business_name": data["business_name"],
            "domain": data["domain"],
            "industry": data.get("industry") or "Technology",
            "geography": data.get("geography") or "US",
            "assessment_type": data.get("assessment_type") or "Quick Scan",
            "description": data.get("description"),
            "status": "pending",
            "risk_score": 0.0,
            "risk_category": None,
            "findings": {"critical_issues": 0, "warnings": 0, "recommendations": 0},
            "risk_factors": {},
            "created_at": now,
            "updated_at": now,
            "reads": 0,
            "credits_consumed": scoring.credits_for(data.get("assessment_type") or "Quick Scan"),
        }
        self.business_assessments[record["id"]] = record
        return record

    def read_business_assessment(self, assessment_id: str) -> dict[str, Any] | None:
        record = self.business_assessments.get(assessment_id)
        if record is None:
            return None
        record["reads"] += 1
        self._advance(record, record["domain"], record["assessment_type"])
        return record

    def list_business_assessments(self, user_id: str | None = None) -> list[dict[str, Any]]:
        return [
            a for a in self.business_assessments.values()
            if user_id is None or a["user_id"] == user_id
        ]

    def delete_business_assessment(self, assessment_id: str) -> bool:
        return self.business_assessments.pop(assessment_id, None) is not None

    @staticmethod
    def business_view(record: dict[str, Any]) -> dict[str, Any]:
        """Public shape of a business-risk assessment."""
        return {
            "id": record["id"],
            "business_name": record["business_name"],
            "domain": record["domain"],
            "industry": record["industry"],
            "geography": record["geography"],
            "assessment_type": record["assessment_type"],
            "status": BRP_STATUS[record["status"]],
            "risk_level": scoring.risk_level(record["risk_category"]),
            "risk_score": record["risk_score"] or 0.0,
            "findings": record["findings"],
            "date_created": record["created_at"],
            "last_updated": record["updated_at"],
            "description": record.get("description"),
        }

    @staticmethod
    def assessment_view(record: dict[str, Any]) -> dict[str, Any]:
        return {
            "id": record["id"],
            "website": record["website"],
            "country_code": record["country_code"],
            "description": record["description"],
            "status": record["status"],
            "risk_category": record["risk_category"],
            "risk_score": record["risk_score"],
            "results": record["results"],
            "created_at": record["created_at"],
            "updated_at": record["updated_at"],
        }

    # ─── CRM website-risk flow ─────────────────────────────────────────────

    def upsert_website_assessment(self, data: dict[str, Any]) -> dict[str, Any]:
        website = data["Website"]
        score = scoring.generate_risk_score(website, "Comprehensive")
        record = {
            "id": data["Id"],
            "website": website,
            "billing_country_code": data["BillingCountryCode"],
            "salesforce_request": data,
            "status": "completed",
            "risk_score": int(score),
            "risk_category": scoring.risk_category(score),
            "risk_breakdown": scoring.risk_breakdown(score),
            "qualification_status": None,
            "updated_at": _now(),
        }
        self.website_assessments[website] = record
        return record


# Global singleton, reset between tests
data_store = DataStore()
