from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from jobboard.services.pipeline import (
    PipelineAdminClient,
    PipelineConfigurationError,
    PipelineRequestError,
    PipelineValidationError,
)


def _run(handler, call):
    async def run() -> Any:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            pipeline = PipelineAdminClient("https://pipeline.example.test/", "shh", client=client)
            return await call(pipeline)

    return asyncio.run(run())


def test_calls_carry_shared_secret_and_json_body() -> None:
    seen: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"deleted": 2}, request=request)

    result = _run(
        handler,
        lambda pipeline: pipeline.delete_search_documents(typesense_ids=["a", "b"], external_ids=["1", "2"]),
    )

    assert result == {"deleted": 2}
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://pipeline.example.test/api/admin/typesense/delete"
    assert request.headers["X-Pipeline-Secret"] == "shh"
    assert json.loads(request.content) == {"typesenseIds": ["a", "b"], "externalIds": ["1", "2"]}


def test_empty_response_body_is_an_empty_object() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(204, request=request)

    assert _run(handler, lambda pipeline: pipeline.nuke_all()) == {}


def test_failed_call_names_the_action() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom", request=request)

    with pytest.raises(PipelineRequestError, match="Failed to get cache stats: 500 boom") as excinfo:
        _run(handler, lambda pipeline: pipeline.get_cache_stats())
    assert excinfo.value.status_code == 500


def test_unreachable_pipeline_is_a_request_error() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(PipelineRequestError, match="Failed to get fair chance stats"):
        _run(handler, lambda pipeline: pipeline.get_fair_chance_stats())


def test_clear_cache_body_shapes() -> None:
    bodies: list[dict[str, Any]] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"ok": True}, request=request)

    _run(handler, lambda pipeline: pipeline.clear_cache(clear_all=True))
    _run(handler, lambda pipeline: pipeline.clear_cache(start_date="2026-01-01", end_date="2026-01-31"))

    assert bodies == [{"clearAll": True}, {"startDate": "2026-01-01", "endDate": "2026-01-31"}]


def test_clear_cache_requires_all_or_a_range() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    with pytest.raises(PipelineValidationError, match="Specify clearAll or startDate/endDate"):
        _run(handler, lambda pipeline: pipeline.clear_cache(start_date="2026-01-01"))


def test_missing_configuration() -> None:
    pipeline = PipelineAdminClient(None, "secret")
    with pytest.raises(PipelineConfigurationError):
        pipeline.ensure_configured()
    with pytest.raises(PipelineConfigurationError):
        asyncio.run(pipeline.get_cache_stats())
