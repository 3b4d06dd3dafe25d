from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from jobboard.services.events import JOB_SUBMITTED, WorkflowEventClient, WorkflowEventError


def _send(handler, url: str | None = "https://workflow.example.test/e/key") -> bool:
    async def run() -> bool:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await WorkflowEventClient(url, client=client).send(JOB_SUBMITTED, {"submissionId": "s-1"})

    return asyncio.run(run())


def test_posts_name_and_data() -> None:
    bodies: list[dict] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"ids": ["evt"]}, request=request)

    assert _send(handler) is True
    assert bodies == [{"name": "job/submitted", "data": {"submissionId": "s-1"}}]


def test_missing_webhook_url_skips_the_send() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert _send(handler, url=None) is False


def test_rejected_event_raises() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="bad key", request=request)

    with pytest.raises(WorkflowEventError, match="Workflow webhook failed: 401 bad key"):
        _send(handler)


def test_event_id_is_sent_when_given() -> None:
    bodies: list[dict] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={"ids": ["evt"]}, request=request)

    async def run() -> bool:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            events = WorkflowEventClient("https://workflow.example.test/e/key", client=client)
            return await events.send(JOB_SUBMITTED, {"submissionId": "s-1"}, event_id="job/submitted:s-1")

    assert asyncio.run(run()) is True
    assert bodies[0]["id"] == "job/submitted:s-1"
