from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from jobboard.main import app
from jobboard.services.job_matcher import format_salary, sanitize_hit
from jobboard.services.search import SearchPlan, SearchRequestError, get_search_client


class FakeSearch:
    def __init__(self, result: dict[str, Any] | None = None, error: Exception | None = None) -> None:
        self.result = result or {"found": 0, "hits": []}
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def search(self, *, q: str | None, plan: SearchPlan, per_page: int, facet: bool) -> dict[str, Any]:
        self.calls.append({"q": q, "plan": plan, "per_page": per_page, "facet": facet})
        if self.error is not None:
            raise self.error
        return self.result


def _document(index: int, **extra: Any) -> dict[str, Any]:
    return {
        "id": f"snagajob-{index}",
        "title": "Line Cook",
        "company": "Harbor Grill",
        "city": "Miami",
        "state": "FL",
        "url": f"https://jobs.example.test/{index}",
        **extra,
    }


def test_profile_round_trip(api_client: TestClient, login) -> None:
    headers = login("seeker-1")
    assert api_client.get("/me/profile", headers=headers).json() is None

    created = api_client.put("/me/profile", json={"name": "Sam", "home_lat": 25.76}, headers=headers).json()
    updated = api_client.put("/me/profile", json={"bio": "Cook"}, headers=headers).json()

    assert updated["id"] == created["id"]
    assert updated["name"] == "Sam"
    assert updated["bio"] == "Cook"
    assert updated["home_lat"] == 25.76


def test_profile_rejects_out_of_range_coordinates(api_client: TestClient, login) -> None:
    response = api_client.put("/me/profile", json={"home_lat": 120}, headers=login())
    assert response.status_code == 422


def test_preferences_replace_wholesale(api_client: TestClient, login) -> None:
    headers = login("seeker-1")
    api_client.put("/me/preferences", json={"require_bus": True, "max_commute_minutes": 30}, headers=headers)

    replaced = api_client.put("/me/preferences", json={"shift_evening": True}, headers=headers).json()

    assert replaced["require_bus"] is False
    assert replaced["max_commute_minutes"] is None
    assert replaced["shift_evening"] is True
    assert api_client.put("/me/preferences", json={"max_commute_minutes": 45}, headers=headers).status_code == 422


def test_search_folds_in_preferences_and_home(api_client: TestClient, login) -> None:
    fake = FakeSearch(
        {
            "found": 7,
            "hits": [{"document": _document(index, shift_evening=True, bus_accessible=True)} for index in range(4)],
        }
    )
    app.dependency_overrides[get_search_client] = lambda: fake
    headers = login("seeker-1")
    api_client.put("/me/profile", json={"home_lat": 25.76, "home_lon": -80.19, "home_address": "Downtown"}, headers=headers)
    api_client.put("/me/preferences", json={"require_bus": True, "shift_evening": True}, headers=headers)

    response = api_client.post(
        "/job-matcher/search",
        json={"query": "cook", "city": "Miami", "shifts": ["morning"], "limit": 2},
        headers=headers,
    )

    assert response.status_code == 200
    [call] = fake.calls
    assert call["plan"].filter_by == (
        "city:=Miami && bus_accessible:=true && (shift_evening:=true || shift_morning:=true)"
        " && location:(25.76, -80.19, 80 km)"
    )
    assert call["plan"].sort_by == "location(25.76, -80.19):asc"
    assert call["per_page"] == 6
    assert call["facet"] is False

    body = response.json()
    assert body["total_found"] == 7
    assert len(body["jobs"]) == 2
    assert body["jobs"][0]["shifts"] == ["evening"]
    assert body["jobs"][0]["transit_accessible"] is True
    assert body["search_context"]["location"]["near_home"] is True
    assert body["search_context"]["filters"]["shifts"] == ["evening", "morning"]


def test_search_engine_failure_is_bad_gateway(api_client: TestClient, login) -> None:
    app.dependency_overrides[get_search_client] = lambda: FakeSearch(error=SearchRequestError("Failed to search jobs: 500"))
    response = api_client.post("/job-matcher/search", json={}, headers=login())
    assert response.status_code == 502


def test_search_limit_is_capped(api_client: TestClient, login) -> None:
    app.dependency_overrides[get_search_client] = lambda: FakeSearch()
    assert api_client.post("/job-matcher/search", json={"limit": 9}, headers=login()).status_code == 422


@pytest.mark.parametrize(
    ("document", "expected"),
    [
        ({"salary_min": 15, "salary_max": 18}, "$15 - $18/hourly"),
        ({"salary_min": 52000, "salary_type": "salary"}, "$52,000/salary"),
        ({"salary_min": 20, "salary_max": 20}, "$20/hourly"),
        ({}, None),
    ],
)
def test_format_salary(document: dict[str, Any], expected: str | None) -> None:
    assert format_salary(document) == expected


def test_sanitize_hit_truncates_description() -> None:
    hit = sanitize_hit(_document(1, description="x" * 150, second_chance=True))
    assert hit["description"] == "x" * 100 + "..."
    assert hit["location"] == "Miami, FL"
    assert hit["is_second_chance"] is True
    assert hit["transit_accessible"] is False


def test_saving_and_skipping_jobs(api_client: TestClient, login) -> None:
    headers = login("seeker-1")
    snapshot = {"title": "Line Cook", "company": "Harbor Grill", "shifts": ["evening"], "is_second_chance": True}

    saved = api_client.put(
        "/me/job-reviews/snagajob-1",
        json={"status": "saved", "job_snapshot": snapshot},
        headers=headers,
    )
    api_client.put("/me/job-reviews/snagajob-2", json={"status": "skipped"}, headers=headers)

    assert saved.status_code == 200
    assert saved.json()["job_snapshot"]["shifts"] == ["evening"]
    ids = api_client.get("/me/job-reviews/ids", headers=headers).json()["job_ids"]
    assert sorted(ids) == ["snagajob-1", "snagajob-2"]
    assert [row["job_id"] for row in api_client.get("/me/saved-jobs", headers=headers).json()] == ["snagajob-1"]

    resaved = api_client.put("/me/job-reviews/snagajob-1", json={"status": "skipped"}, headers=headers).json()
    assert resaved["id"] == saved.json()["id"]
    assert api_client.get("/me/saved-jobs", headers=headers).json() == []

    assert api_client.delete("/me/saved-jobs/snagajob-1", headers=headers).json() == {"removed": True}
    assert api_client.delete("/me/saved-jobs/snagajob-1", headers=headers).json() == {"removed": False}
    assert api_client.get("/me/job-reviews/ids", headers=login("seeker-2")).json() == {"job_ids": []}


def test_review_status_is_validated(api_client: TestClient, login) -> None:
    response = api_client.put("/me/job-reviews/snagajob-1", json={"status": "maybe"}, headers=login())
    assert response.status_code == 422


def test_search_leaves_out_reviewed_jobs(api_client: TestClient, login) -> None:
    fake = FakeSearch({"found": 5, "hits": [{"document": _document(index)} for index in range(5)]})
    app.dependency_overrides[get_search_client] = lambda: fake
    headers = login("seeker-1")
    api_client.put("/me/job-reviews/snagajob-0", json={"status": "skipped"}, headers=headers)
    api_client.put("/me/job-reviews/snagajob-2", json={"status": "saved"}, headers=headers)

    body = api_client.post("/job-matcher/search", json={"limit": 2}, headers=headers).json()

    assert fake.calls[0]["per_page"] == 6
    assert [job["id"] for job in body["jobs"]] == ["snagajob-1", "snagajob-3"]
