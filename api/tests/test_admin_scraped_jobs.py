from __future__ import annotations

import asyncio
from typing import Any

import pytest
from fastapi.testclient import TestClient

from jobboard.main import app
from jobboard.services.pipeline import PipelineConfigurationError, get_pipeline_client
from jobboard.services.search import SearchPlan, get_search_client
from jobboard.services.store import InMemoryRepository


class FakePipeline:
    def __init__(self, *, configured: bool = True) -> None:
        self.configured = configured
        self.deleted: list[dict[str, list[str]]] = []
        self.nuked = False

    def ensure_configured(self) -> None:
        if not self.configured:
            raise PipelineConfigurationError("SCRAPE_PIPELINE_URL or SCRAPE_PIPELINE_SECRET not configured")

    async def delete_search_documents(self, *, typesense_ids: list[str], external_ids: list[str]) -> dict[str, Any]:
        self.deleted.append({"typesense_ids": typesense_ids, "external_ids": external_ids})
        return {"deleted": len(typesense_ids)}

    async def nuke_all(self) -> dict[str, Any]:
        self.nuked = True
        return {}

    async def get_cache_stats(self) -> dict[str, Any]:
        return {"entries": 12}


class FakeSearch:
    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []

    async def search(self, *, q: str | None, plan: SearchPlan, page: int, per_page: int) -> dict[str, Any]:
        self.calls.append({"q": q, "plan": plan, "page": page, "per_page": per_page})
        return {"found": 0, "hits": []}


@pytest.fixture
def pipeline(api_client: TestClient) -> FakePipeline:
    fake = FakePipeline()
    app.dependency_overrides[get_pipeline_client] = lambda: fake
    return fake


def _seed(repository: InMemoryRepository, count: int) -> list[dict[str, Any]]:
    async def seed() -> list[dict[str, Any]]:
        rows = []
        for index in range(count):
            row = await repository.insert_scraped_job(
                fields={
                    "external_id": f"ext-{index}",
                    "source": "snagajob",
                    "company": "Acme",
                    "title": "Warehouse Associate",
                    "url": f"https://jobs.example.test/{index}",
                }
            )
            rows.append(await repository.mark_scraped_job_indexed(job_id=row["id"], typesense_id=f"ts-{index}"))
        return rows

    return asyncio.run(seed())


def test_delete_by_typesense_id_removes_record_then_document(
    api_client: TestClient,
    repository: InMemoryRepository,
    pipeline: FakePipeline,
    login,
) -> None:
    [job] = _seed(repository, 1)

    response = api_client.post("/admin/scraped-jobs/delete", json={"typesense_id": "ts-0"}, headers=login(role="admin"))

    assert response.status_code == 200
    assert response.json() == {"success": True, "external_id": "ext-0", "source": "snagajob", "typesense_id": "ts-0"}
    assert job["id"] not in repository.scraped_jobs
    assert pipeline.deleted == [{"typesense_ids": ["ts-0"], "external_ids": ["ext-0"]}]


def test_delete_requires_an_identifier(api_client: TestClient, pipeline: FakePipeline, login) -> None:
    response = api_client.post("/admin/scraped-jobs/delete", json={}, headers=login(role="admin"))
    assert response.status_code == 422
    assert response.json()["detail"] == "Must provide either id or typesenseId"


def test_delete_unknown_typesense_id_is_404(api_client: TestClient, pipeline: FakePipeline, login) -> None:
    response = api_client.post("/admin/scraped-jobs/delete", json={"typesense_id": "nope"}, headers=login(role="admin"))
    assert response.status_code == 404
    assert pipeline.deleted == []


def test_unconfigured_pipeline_leaves_the_store_untouched(
    api_client: TestClient,
    repository: InMemoryRepository,
    pipeline: FakePipeline,
    login,
) -> None:
    [job] = _seed(repository, 1)
    pipeline.configured = False

    response = api_client.post("/admin/scraped-jobs/delete", json={"id": job["id"]}, headers=login(role="admin"))

    assert response.status_code == 503
    assert job["id"] in repository.scraped_jobs


def test_bulk_delete_reports_missing_ids(
    api_client: TestClient,
    repository: InMemoryRepository,
    pipeline: FakePipeline,
    login,
) -> None:
    rows = _seed(repository, 3)
    ids = [row["id"] for row in rows] + ["missing"]

    response = api_client.post("/admin/scraped-jobs/bulk-delete", json={"ids": ids}, headers=login(role="admin"))

    body = response.json()
    assert response.status_code == 200
    assert body["deleted"] == 3
    assert body["failed"] == 1
    assert body["results"][-1] == {
        "id": "missing",
        "deleted": False,
        "external_id": None,
        "source": None,
        "typesense_id": None,
        "error": "not_found",
    }
    assert pipeline.deleted == [{"typesense_ids": ["ts-0", "ts-1", "ts-2"], "external_ids": ["ext-0", "ext-1", "ext-2"]}]
    assert repository.scraped_jobs == {}


def test_bulk_delete_rejects_empty_list(api_client: TestClient, pipeline: FakePipeline, login) -> None:
    response = api_client.post("/admin/scraped-jobs/bulk-delete", json={"ids": []}, headers=login(role="admin"))
    assert response.status_code == 422


def test_nuke_requires_confirmation(
    api_client: TestClient,
    repository: InMemoryRepository,
    pipeline: FakePipeline,
    login,
) -> None:
    _seed(repository, 2)
    headers = login(role="admin")

    refused = api_client.post("/admin/scraped-jobs/nuke", json={"confirm": "yes"}, headers=headers)
    assert refused.status_code == 422
    assert len(repository.scraped_jobs) == 2

    response = api_client.post("/admin/scraped-jobs/nuke", json={"confirm": "nuke"}, headers=headers)
    assert response.json() == {"success": True, "deleted": 2}
    assert repository.scraped_jobs == {}
    assert pipeline.nuked is True


def test_nuke_is_refused_in_production(
    api_client: TestClient,
    repository: InMemoryRepository,
    pipeline: FakePipeline,
    login,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    from jobboard.core.config import get_settings

    _seed(repository, 1)
    monkeypatch.setenv("ENVIRONMENT", "production")
    get_settings.cache_clear()

    response = api_client.post("/admin/scraped-jobs/nuke", json={"confirm": "nuke"}, headers=login(role="admin"))

    assert response.status_code == 403
    assert len(repository.scraped_jobs) == 1
    assert pipeline.nuked is False


def test_search_passes_allow_listed_filters(api_client: TestClient, login) -> None:
    fake = FakeSearch()
    app.dependency_overrides[get_search_client] = lambda: fake

    response = api_client.get(
        "/admin/scraped-jobs/search",
        params={"q": "cook", "city": "Miami", "second_chance": "true", "per_page": 10},
        headers=login(role="admin"),
    )

    assert response.status_code == 200
    [call] = fake.calls
    assert call["q"] == "cook"
    assert call["per_page"] == 10
    assert call["plan"].filter_by == "city:=Miami && second_chance:=true"


def test_admin_email_bootstrap_grants_access(api_client: TestClient, pipeline: FakePipeline, login) -> None:
    response = api_client.get("/admin/scraped-jobs/cache/stats", headers=login(email="Boss@Example.test"))
    assert response.status_code == 200
    assert response.json() == {"entries": 12}


def test_regular_user_is_forbidden(api_client: TestClient, pipeline: FakePipeline, login) -> None:
    response = api_client.get("/admin/scraped-jobs/stats", headers=login(email="someone@example.test"))
    assert response.status_code == 403
    assert response.json()["detail"] == "Admin access required"


def test_anonymous_is_unauthorized(api_client: TestClient) -> None:
    assert api_client.get("/admin/scraped-jobs/stats").status_code == 401
