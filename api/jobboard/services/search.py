from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import httpx

from jobboard.core.config import get_settings

STRING_FILTER_KEYS = ("source", "city", "state", "second_chance_tier")
BOOLEAN_FILTER_KEYS = (
    "bus_accessible",
    "rail_accessible",
    "shift_morning",
    "shift_afternoon",
    "shift_evening",
    "shift_overnight",
    "shift_flexible",
    "is_urgent",
    "is_easy_apply",
    "second_chance",
)
FILTER_KEYS = STRING_FILTER_KEYS + BOOLEAN_FILTER_KEYS
SHIFT_NAMES = ("morning", "afternoon", "evening", "overnight", "flexible")
QUERY_BY = "title,company,description"
DEFAULT_SORT = "_text_match:desc"

_UNSAFE_FILTER_CHARS = re.compile(r"[`\\:=<>&|()\[\]]")
_TRUE_STRINGS = {"true", "1", "yes"}
_FALSE_STRINGS = {"false", "0", "no"}


class SearchConfigurationError(RuntimeError):
    """Raised when the search engine URL or API key is not configured."""


class SearchRequestError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@dataclass(frozen=True, slots=True)
class GeoFilter:
    lat: float
    lng: float
    radius_km: float


@dataclass(frozen=True, slots=True)
class SearchPlan:
    filter_by: str | None
    sort_by: str


def sanitize_filter_value(value: str) -> str:
    """Strip characters that carry meaning in the engine's filter grammar."""
    return _UNSAFE_FILTER_CHARS.sub("", value).strip()


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def build_search_filters(
    filters: Mapping[str, Any] | None,
    shift_preferences: Iterable[str] | None = None,
    geo: GeoFilter | None = None,
) -> SearchPlan:
    """Translate allow-listed filters into a filter expression and sort clause.

    Keys outside the allow-list are ignored, string values are sanitised and
    dropped when nothing is left, and shift preferences become a single OR group.
    Clauses are joined with ``&&`` in a stable order: string keys, boolean keys,
    the shift group, then the geo radius.
    """
    clauses: list[str] = []
    filters = filters or {}

    for key in STRING_FILTER_KEYS:
        raw = filters.get(key)
        if raw is None:
            continue
        value = sanitize_filter_value(str(raw))
        if value:
            clauses.append(f"{key}:={value}")

    for key in BOOLEAN_FILTER_KEYS:
        flag = _coerce_bool(filters.get(key))
        if flag is not None:
            clauses.append(f"{key}:={'true' if flag else 'false'}")

    shifts: list[str] = []
    for name in shift_preferences or ():
        if name in SHIFT_NAMES and name not in shifts:
            shifts.append(name)
    if shifts:
        clauses.append("(" + " || ".join(f"shift_{name}:=true" for name in shifts) + ")")

    sort_by = DEFAULT_SORT
    if geo is not None:
        clauses.append(f"location:({geo.lat}, {geo.lng}, {geo.radius_km:g} km)")
        sort_by = f"location({geo.lat}, {geo.lng}):asc"

    return SearchPlan(filter_by=" && ".join(clauses) if clauses else None, sort_by=sort_by)


class TypesenseClient:
    def __init__(
        self,
        base_url: str | None,
        api_key: str | None,
        collection: str = "jobs",
        *,
        timeout_seconds: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key
        self.collection = collection
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def search(
        self,
        *,
        q: str | None = None,
        plan: SearchPlan | None = None,
        page: int = 1,
        per_page: int = 25,
        facet: bool = True,
    ) -> dict[str, Any]:
        plan = plan or SearchPlan(filter_by=None, sort_by=DEFAULT_SORT)
        params: dict[str, Any] = {
            "q": q.strip() if q and q.strip() else "*",
            "query_by": QUERY_BY,
            "page": page,
            "per_page": per_page,
            "sort_by": plan.sort_by,
        }
        if plan.filter_by:
            params["filter_by"] = plan.filter_by
        if facet:
            params["facet_by"] = ",".join(FILTER_KEYS)
        response = await self._request("GET", f"/collections/{self.collection}/documents/search", params=params)
        if response.status_code >= 400:
            raise self._error("search jobs", response)
        return response.json()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if not self.base_url or not self.api_key:
            raise SearchConfigurationError("TYPESENSE_URL or TYPESENSE_API_KEY not configured")
        headers = {"X-TYPESENSE-API-KEY": self.api_key}
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                return await self._client.request(method, url, headers=headers, **kwargs)
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                return await client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise SearchRequestError(f"Search engine unreachable: {exc}") from exc

    @staticmethod
    def _error(action: str, response: httpx.Response) -> SearchRequestError:
        return SearchRequestError(
            f"Failed to {action}: {response.status_code} {response.text}",
            status_code=response.status_code,
            body=response.text,
        )


@lru_cache
def get_search_client() -> TypesenseClient:
    settings = get_settings()
    return TypesenseClient(
        settings.typesense_url,
        settings.typesense_api_key,
        settings.typesense_collection,
        timeout_seconds=settings.typesense_timeout_seconds,
    )
