from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest

from jobboard.services.search import (
    DEFAULT_SORT,
    GeoFilter,
    SearchConfigurationError,
    SearchRequestError,
    TypesenseClient,
    build_search_filters,
    sanitize_filter_value,
)


def test_no_filters_yields_no_filter_and_relevance_sort() -> None:
    plan = build_search_filters({})
    assert plan.filter_by is None
    assert plan.sort_by == DEFAULT_SORT


def test_keys_outside_allow_list_are_dropped() -> None:
    plan = build_search_filters({"title": "cook", "company": "Acme", "city": "Miami"})
    assert plan.filter_by == "city:=Miami"


def test_sanitises_injection_characters() -> None:
    plan = build_search_filters({"city": "Miami && second_chance:=false"})
    assert plan.filter_by == "city:=Miami  second_chancefalse"
    assert sanitize_filter_value("`a\\b:c=d<e>f&g|h(i)j[k]l`") == "abcdefghijkl"


def test_value_empty_after_sanitisation_is_dropped() -> None:
    plan = build_search_filters({"state": "::==", "source": "snagajob"})
    assert plan.filter_by == "source:=snagajob"


def test_booleans_render_true_and_false() -> None:
    plan = build_search_filters({"bus_accessible": True, "is_urgent": "false", "second_chance": "yes"})
    assert plan.filter_by == "bus_accessible:=true && is_urgent:=false && second_chance:=true"


def test_unparseable_boolean_is_ignored() -> None:
    assert build_search_filters({"rail_accessible": "maybe"}).filter_by is None


def test_shift_preferences_form_an_or_group() -> None:
    plan = build_search_filters({"city": "Tampa"}, shift_preferences=["morning", "evening", "brunch", "morning"])
    assert plan.filter_by == "city:=Tampa && (shift_morning:=true || shift_evening:=true)"


def test_geo_adds_radius_clause_and_distance_sort() -> None:
    plan = build_search_filters({}, geo=GeoFilter(lat=25.76, lng=-80.19, radius_km=80))
    assert plan.filter_by == "location:(25.76, -80.19, 80 km)"
    assert plan.sort_by == "location(25.76, -80.19):asc"


def test_search_sends_plan_and_facets() -> None:
    captured: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = request.url
        captured["api_key"] = request.headers.get("X-TYPESENSE-API-KEY")
        return httpx.Response(200, json={"found": 0, "hits": []}, request=request)

    async def run() -> dict[str, Any]:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            search_client = TypesenseClient("https://search.example.test/", "ts-key", client=client)
            return await search_client.search(q="  ", plan=build_search_filters({"city": "Miami"}), per_page=10)

    result = asyncio.run(run())
    assert result == {"found": 0, "hits": []}
    params = captured["url"].params
    assert captured["url"].path == "/collections/jobs/documents/search"
    assert captured["api_key"] == "ts-key"
    assert params["q"] == "*"
    assert params["query_by"] == "title,company,description"
    assert params["filter_by"] == "city:=Miami"
    assert params["per_page"] == "10"
    assert params["sort_by"] == DEFAULT_SORT
    assert "second_chance" in params["facet_by"].split(",")


def test_search_error_carries_status_and_body() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, text="bad filter", request=request)

    async def run() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await TypesenseClient("https://search.example.test", "ts-key", client=client).search()

    with pytest.raises(SearchRequestError, match="Failed to search jobs: 400 bad filter") as excinfo:
        asyncio.run(run())
    assert excinfo.value.status_code == 400


def test_missing_configuration_fails_fast() -> None:
    with pytest.raises(SearchConfigurationError, match="TYPESENSE_URL or TYPESENSE_API_KEY not configured"):
        asyncio.run(TypesenseClient(None, "key").search())
