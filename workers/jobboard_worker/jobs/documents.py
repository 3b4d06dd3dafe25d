from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

DESCRIPTION_MAX_CHARS = 10000
TRANSIT_GRADE_SCORES = {"A+": 100, "A": 85, "B": 70, "C": 50, "D": 25}
PAY_TYPES = {
    "1": "hourly",
    "2": "salary",
    "3": "daily",
    "hourly": "hourly",
    "salary": "salary",
    "daily": "daily",
}
_SIGNAL_FIELDS = (
    "bus_accessible",
    "rail_accessible",
    "shift_morning",
    "shift_afternoon",
    "shift_evening",
    "shift_overnight",
    "shift_flexible",
    "second_chance",
    "second_chance_tier",
    "no_background_check",
)


def transit_signals(job: dict[str, Any]) -> dict[str, Any]:
    """Map scraper-provided transit data onto enrichment fields.

    Returns an empty dict when the scraper supplied no grade. Bus access is
    only claimed when there is no rail stop nearby.
    """
    grade = job.get("transit_grade")
    if not grade:
        return {}
    nearby_rail = bool(job.get("transit_nearby_rail"))
    nearby_stops = int(job.get("transit_nearby_stops") or 0)
    return {
        "transit_score": grade,
        "transit_distance": job.get("transit_distance_miles"),
        "bus_accessible": not nearby_rail and nearby_stops > 0,
        "rail_accessible": nearby_rail,
    }


def document_id(job: dict[str, Any]) -> str:
    return f"{job['source']}-{job['external_id']}"


def to_search_document(job: dict[str, Any], *, now: datetime | None = None) -> dict[str, Any]:
    """Build the jobs-collection document for an enriched scraped job."""
    document: dict[str, Any] = {
        "id": document_id(job),
        "external_id": job["external_id"],
        "source": job["source"],
        "title": job["title"],
        "company": job["company"],
        "url": job.get("url") or "",
        "posted_at": _epoch_millis(job.get("posted_at"), now=now),
        "is_urgent": bool(job.get("is_urgent")),
        "is_easy_apply": bool(job.get("is_easy_apply")),
    }

    if job.get("lat") is not None and job.get("lng") is not None:
        document["location"] = [job["lat"], job["lng"]]
    for key in ("city", "state"):
        if job.get(key):
            document[key] = job[key]
    if job.get("description"):
        document["description"] = job["description"][:DESCRIPTION_MAX_CHARS]

    if job.get("pay_min"):
        document["salary_min"] = round(job["pay_min"])
    if job.get("pay_max"):
        document["salary_max"] = round(job["pay_max"])
    if job.get("pay_type"):
        pay_type = str(job["pay_type"])
        document["salary_type"] = PAY_TYPES.get(pay_type.lower(), pay_type)

    grade = job.get("transit_score")
    if grade:
        document["transit_score"] = TRANSIT_GRADE_SCORES.get(grade, 0)
        if job.get("transit_distance") is not None:
            document["transit_distance"] = job["transit_distance"]

    for key in _SIGNAL_FIELDS:
        if job.get(key) is not None:
            document[key] = job[key]
    return document


def _epoch_millis(value: Any, *, now: datetime | None) -> int:
    if isinstance(value, str) and value:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif isinstance(value, datetime):
        parsed = value
    else:
        parsed = now or datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)
