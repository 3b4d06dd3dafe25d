from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from jobboard_worker.services.api_client import ScrapedJobsClient
from jobboard_worker.services.search_client import SearchConfigurationError, SearchIndexClient


def _api_call(handler, call) -> Any:
    async def run() -> Any:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            api = ScrapedJobsClient("http://api.test/", "enrichment-worker", "secret", client=client)
            return await call(api)

    return asyncio.run(run())


def test_list_by_status_sends_machine_headers() -> None:
    seen: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": "job-1"}], request=request)

    jobs = _api_call(handler, lambda api: api.list_by_status("scraped", limit=10))

    assert jobs == [{"id": "job-1"}]
    request = seen[0]
    assert request.url.path == "/scraped-jobs"
    assert request.url.params["status"] == "scraped"
    assert request.url.params["limit"] == "10"
    assert request.headers["X-Module-Id"] == "enrichment-worker"
    assert request.headers["X-API-Key"] == "secret"


def test_mark_failed_patches_status() -> None:
    seen: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "job-1", "status": "failed"}, request=request)

    _api_call(handler, lambda api: api.mark_failed("job-1", reason="boom", stage="index"))

    assert seen[0].method == "PATCH"
    assert seen[0].url.path == "/scraped-jobs/job-1/status"
    assert json.loads(seen[0].content) == {"status": "failed", "failure_reason": "boom", "failure_stage": "index"}


def test_api_errors_raise() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"detail": "bad"}, request=request)

    with pytest.raises(httpx.HTTPStatusError):
        _api_call(handler, lambda api: api.enrich("job-1", {"second_chance_confidence": 2}))


def test_search_upsert_uses_upsert_action() -> None:
    seen: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"id": "snagajob-1"}, request=request)

    async def run() -> str:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            search = SearchIndexClient("http://search.test", "ts-key", client=client)
            return await search.upsert({"id": "snagajob-1", "title": "Cook"})

    assert asyncio.run(run()) == "snagajob-1"
    request = seen[0]
    assert request.url.path == "/collections/jobs/documents"
    assert request.url.params["action"] == "upsert"
    assert request.headers["X-TYPESENSE-API-KEY"] == "ts-key"


def test_search_client_requires_configuration() -> None:
    with pytest.raises(SearchConfigurationError):
        SearchIndexClient(None, None).ensure_configured()
