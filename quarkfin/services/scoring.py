"""Risk scoring used by the development backend to complete assessments."""

from __future__ import annotations

import csv
import hashlib
import io
import statistics
from collections import Counter, defaultdict
from datetime import datetime
from typing import Any

# Credits consumed per assessment type
ASSESSMENT_CREDITS = {
    "Comprehensive": 3,
    "Quick Scan": 1,
}

CREDIT_PRICE = 0.01

RISK_LEVELS = {
    "low_risk": "Low",
    "med_risk": "Medium",
    "high_risk": "High",
}

# Weights applied to the overall score to derive per-factor scores
RISK_FACTOR_WEIGHTS = {
    "cybersecurity": 0.8,
    "financial": 0.6,
    "operational": 0.7,
    "compliance": 0.9,
    "reputational": 0.5,
}

CSV_COLUMNS = [
    "ID",
    "Business Name",
    "Domain",
    "Risk Score",
    "Risk Level",
    "Status",
    "Date Created",
    "Industry",
    "Geography",
    "Assessment Type",
    "Critical Issues",
    "Warnings",
    "Recommendations",
]


def credits_for(assessment_type: str) -> int:
    return ASSESSMENT_CREDITS.get(assessment_type, 1)


def cost_for(assessment_type: str) -> float:
    return round(credits_for(assessment_type) * CREDIT_PRICE, 3)


def _domain_jitter(domain: str) -> int:
    """Stable offset in [-10, 9] derived from the domain name."""
    digest = hashlib.sha256(domain.lower().encode("utf-8")).hexdigest()
    return int(digest[:8], 16) % 20 - 10


def generate_risk_score(domain: str, assessment_type: str) -> float:
    """Heuristic risk score for a domain.

    Short domains score riskier, ``.com`` domains slightly safer, and a
    comprehensive assessment digs up more. The result is clamped to 0-100.
    """
    score = 45.0
    if len(domain) < 8:
        score += 10
    if domain.endswith(".com"):
        score -= 5
    if assessment_type == "Comprehensive":
        score += 8
    score += _domain_jitter(domain)
    return max(0.0, min(100.0, score))


def risk_category(score: float) -> str:
    if score <= 40:
        return "low_risk"
    if score <= 70:
        return "med_risk"
    return "high_risk"


def risk_level(category: str | None) -> str:
    if category is None:
        return "Pending"
    return RISK_LEVELS.get(category, "Pending")


def critical_issues(score: float, assessment_type: str) -> int:
    if score > 80:
        return 3 if assessment_type == "Comprehensive" else 1
    if score > 60:
        return 1
    return 0


def warnings(score: float, assessment_type: str) -> int:
    base = 4 if assessment_type == "Comprehensive" else 2
    if score > 70:
        return base + 2
    if score > 50:
        return base + 1
    return base


def recommendations(score: float, assessment_type: str) -> int:
    base = 8 if assessment_type == "Comprehensive" else 3
    return base + int(score / 20)


def findings_for(score: float, assessment_type: str) -> dict[str, int]:
    return {
        "critical_issues": critical_issues(score, assessment_type),
        "warnings": warnings(score, assessment_type),
        "recommendations": recommendations(score, assessment_type),
    }


def risk_factors(score: float) -> dict[str, float]:
    return {name: round(score * weight, 2) for name, weight in RISK_FACTOR_WEIGHTS.items()}


def risk_breakdown(score: float) -> dict[str, int]:
    """Per-check breakdown reported for website-risk assessments."""
    return {name: int(score * weight) for name, weight in RISK_FACTOR_WEIGHTS.items()}


def build_insights(assessments: list[dict[str, Any]]) -> dict[str, Any]:
    """Aggregate insights over a user's business-risk assessments.

    Args:
        assessments: Assessment records as held by the store.

    Returns:
        A dict matching the ``BusinessRiskInsights`` schema.
    """
    total = len(assessments)
    completed = [a for a in assessments if a["status"] == "Completed"]
    finished = [a for a in assessments if a["status"] in ("Completed", "Failed")]
    high_risk = sum(1 for a in assessments if a["risk_level"] == "High")

    scores = [a["risk_score"] for a in completed]
    average = round(statistics.mean(scores), 1) if scores else 0.0

    by_month: dict[str, list[float]] = defaultdict(list)
    for a in sorted(completed, key=lambda a: a["date_created"]):
        by_month[a["date_created"].strftime("%b %Y")].append(a["risk_score"])
    trends = [{"month": month, "score": round(statistics.mean(s), 1)} for month, s in by_month.items()]

    industries = Counter(a["industry"] for a in completed)
    top_categories = [
        {
            "category": industry,
            "count": count,
            "percentage": round(count / len(completed) * 100, 1),
        }
        for industry, count in industries.most_common(5)
    ]

    durations = [
        (a["last_updated"] - a["date_created"]).total_seconds()
        for a in completed
        if isinstance(a.get("last_updated"), datetime)
    ]

    return {
        "total_assessments": total,
        "high_risk_businesses": high_risk,
        "average_risk_score": average,
        "risk_trends": trends,
        "top_risk_categories": top_categories,
        "success_rate": round(len(completed) / len(finished) * 100, 1) if finished else None,
        "processing_time_avg": round(statistics.mean(durations), 1) if durations else None,
    }


def render_csv(assessments: list[dict[str, Any]]) -> str:
    """CSV export of business-risk assessments, one row per assessment."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for a in assessments:
        findings = a["findings"]
        writer.writerow([
            a["id"],
            a["business_name"],
            a["domain"],
            f"{a['risk_score']:.1f}",
            a["risk_level"],
            a["status"],
            a["date_created"].strftime("%Y-%m-%d"),
            a["industry"],
            a["geography"],
            a["assessment_type"],
            findings["critical_issues"],
            findings["warnings"],
            findings["recommendations"],
        ])
    return buffer.getvalue()


def render_report(assessment: dict[str, Any]) -> str:
    """Plain-text report body served by the PDF export endpoint."""
    findings = assessment["findings"]
    return (
        "Business Risk Assessment Report\n\n"
        f"Business: {assessment['business_name']}\n"
        f"Domain: {assessment['domain']}\n"
        f"Risk Score: {assessment['risk_score']:.1f}\n"
        f"Risk Level: {assessment['risk_level']}\n"
        f"Status: {assessment['status']}\n"
        f"Date Created: {assessment['date_created'].strftime('%Y-%m-%d')}\n"
        f"Industry: {assessment['industry']}\n"
        f"Geography: {assessment['geography']}\n"
        f"Assessment Type: {assessment['assessment_type']}\n\n"
        "Findings:\n"
        f"Critical Issues: {findings['critical_issues']}\n"
        f"Warnings: {findings['warnings']}\n"
        f"Recommendations: {findings['recommendations']}"
    )
