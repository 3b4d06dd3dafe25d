from __future__ import annotations

import logging
from typing import Any

from jobboard.schemas.search import JobMatcherSearchRequest
from jobboard.services.repository import PostgresRepository
from jobboard.services.search import SHIFT_NAMES, GeoFilter, TypesenseClient, build_search_filters

logger = logging.getLogger(__name__)

HOME_RADIUS_KM = 80
FETCH_MULTIPLIER = 3
DESCRIPTION_PREVIEW_CHARS = 100


def format_salary(document: dict[str, Any]) -> str | None:
    low = document.get("salary_min")
    high = document.get("salary_max")
    if not low and not high:
        return None
    pay_type = document.get("salary_type") or "hourly"
    low_text = f"${_format_amount(low)}" if low else ""
    high_text = f"${_format_amount(high)}" if high else ""
    if low_text and high_text and low_text != high_text:
        return f"{low_text} - {high_text}/{pay_type}"
    return f"{low_text or high_text}/{pay_type}"


def _format_amount(value: float | int) -> str:
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"{value:,}"


def extract_shifts(document: dict[str, Any]) -> list[str]:
    return [name for name in SHIFT_NAMES if document.get(f"shift_{name}")]


def sanitize_hit(document: dict[str, Any]) -> dict[str, Any]:
    description = document.get("description")
    if description:
        preview = description[:DESCRIPTION_PREVIEW_CHARS]
        if len(description) > DESCRIPTION_PREVIEW_CHARS:
            preview += "..."
    else:
        preview = None
    city = document.get("city")
    state = document.get("state")
    bus = bool(document.get("bus_accessible"))
    rail = bool(document.get("rail_accessible"))
    return {
        "id": document["id"],
        "title": document.get("title") or "",
        "company": document.get("company") or "",
        "location": f"{city}, {state}" if city and state else None,
        "description": preview,
        "salary": format_salary(document),
        "is_second_chance": bool(document.get("second_chance")),
        "second_chance_tier": document.get("second_chance_tier"),
        "shifts": extract_shifts(document),
        "transit_accessible": bus or rail,
        "bus": bus,
        "rail": rail,
        "is_urgent": bool(document.get("is_urgent")),
        "is_easy_apply": bool(document.get("is_easy_apply")),
        "url": document.get("url"),
    }


async def search_jobs_for_user(
    repository: PostgresRepository,
    search_client: TypesenseClient,
    *,
    user_id: str,
    request: JobMatcherSearchRequest,
) -> dict[str, Any]:
    """Run the seeker's job search with their saved preferences folded in.

    Explicit request filters and ``require_*`` preferences both become hard
    filters. Shift flags from preferences and the request are OR'ed together,
    and a saved home location narrows results to a wide radius around it.
    Jobs the seeker already saved or skipped are left out, so the search
    over-fetches before trimming to the requested limit.
    """
    preferences = await repository.get_job_preferences(user_id=user_id) or {}
    profile = await repository.get_profile_by_user(user_id=user_id) or {}

    filters: dict[str, Any] = {}
    if request.second_chance_only or preferences.get("require_second_chance"):
        filters["second_chance"] = True
    if request.city:
        filters["city"] = request.city
    if request.state:
        filters["state"] = request.state
    if request.bus_required or preferences.get("require_bus"):
        filters["bus_accessible"] = True
    if request.rail_required or preferences.get("require_rail"):
        filters["rail_accessible"] = True
    if request.urgent_only:
        filters["is_urgent"] = True
    if request.easy_apply_only:
        filters["is_easy_apply"] = True

    shifts = [name for name in SHIFT_NAMES if preferences.get(f"shift_{name}")]
    for name in request.shifts:
        if name not in shifts:
            shifts.append(name)

    geo = None
    home_lat = profile.get("home_lat")
    home_lon = profile.get("home_lon")
    if home_lat is not None and home_lon is not None:
        geo = GeoFilter(lat=home_lat, lng=home_lon, radius_km=HOME_RADIUS_KM)

    plan = build_search_filters(filters, shift_preferences=shifts, geo=geo)
    result = await search_client.search(
        q=request.query,
        plan=plan,
        per_page=request.limit * FETCH_MULTIPLIER,
        facet=False,
    )

    reviewed = set(await repository.list_reviewed_job_ids(user_id=user_id))
    hits = [hit for hit in result.get("hits") or [] if hit["document"].get("id") not in reviewed]
    jobs = [sanitize_hit(hit["document"]) for hit in hits[: request.limit]]
    found = int(result.get("found") or 0)
    logger.info(
        "job matcher search user_id=%s found=%s reviewed=%s returned=%s",
        user_id,
        found,
        len(reviewed),
        len(jobs),
    )

    return {
        "jobs": jobs,
        "total_found": found,
        "search_context": {
            "query": request.query or "",
            "location": {
                "city": request.city,
                "state": request.state,
                "near_home": geo is not None,
                "home_address": profile.get("home_address"),
                "max_commute_minutes": preferences.get("max_commute_minutes"),
            },
            "filters": {
                "second_chance_required": bool(filters.get("second_chance")),
                "second_chance_preferred": bool(preferences.get("prefer_second_chance")),
                "bus_required": bool(filters.get("bus_accessible")),
                "rail_required": bool(filters.get("rail_accessible")),
                "shifts": shifts,
                "urgent_only": request.urgent_only,
                "easy_apply_only": request.easy_apply_only,
            },
        },
    }
