from __future__ import annotations

import hashlib
import json
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

import jobboard.core.security as security
from jobboard.core.config import get_settings
from jobboard.main import app
from jobboard.services.events import WorkflowEventError, get_event_client
from jobboard.services.repository import get_repository
from jobboard.services.store import InMemoryRepository

TOKEN_SECRET = "test-signing-secret-0123456789abcdef"
MACHINE_KEY = "test-machine-key"
MACHINE_SCOPES = ["scraped_jobs:read", "scraped_jobs:write", "workflow:write", "webhooks:write"]


class RecordingEventClient:
    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.event_ids: list[str | None] = []
        self.failures = 0

    async def send(self, name: str, data: dict[str, Any], *, event_id: str | None = None) -> bool:
        if self.failures:
            self.failures -= 1
            raise WorkflowEventError("Workflow webhook failed: 500 boom", status_code=500)
        self.sent.append((name, data))
        self.event_ids.append(event_id)
        return True


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def events() -> RecordingEventClient:
    return RecordingEventClient()


@pytest.fixture
def machine_headers() -> dict[str, str]:
    return {"X-Module-Id": "test-module", "X-API-Key": MACHINE_KEY}


@pytest.fixture
def api_client(
    monkeypatch: pytest.MonkeyPatch,
    repository: InMemoryRepository,
    events: RecordingEventClient,
) -> Iterator[TestClient]:
    credentials = {
        "test-module": {
            "key_sha256": hashlib.sha256(MACHINE_KEY.encode("utf-8")).hexdigest(),
            "scopes": MACHINE_SCOPES,
        },
        "read-only-module": {
            "key_sha256": hashlib.sha256(b"read-only-key").hexdigest(),
            "scopes": ["scraped_jobs:read"],
        },
    }
    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    monkeypatch.setenv("MACHINE_CREDENTIALS_JSON", json.dumps(credentials))
    monkeypatch.setenv("AUTH_USERINFO_URL", "https://identity.example.test/userinfo")
    monkeypatch.setenv("TOKEN_SIGNING_SECRET", TOKEN_SECRET)
    monkeypatch.setenv("APP_BASE_URL", "https://jobs.example.test")
    monkeypatch.setenv("ADMIN_EMAILS", "boss@example.test")
    monkeypatch.setenv("ENVIRONMENT", "dev")
    get_settings.cache_clear()
    get_repository.cache_clear()

    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_event_client] = lambda: events

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
    get_repository.cache_clear()
    get_settings.cache_clear()


@pytest.fixture
def login(monkeypatch: pytest.MonkeyPatch) -> Callable[..., dict[str, str]]:
    """Stub the identity provider and return bearer headers for the given user."""

    def _login(user_id: str = "user-1", *, role: str | None = None, email: str | None = None) -> dict[str, str]:
        user: dict[str, Any] = {"id": user_id}
        if role is not None:
            user["app_metadata"] = {"role": role}
        if email is not None:
            user["email"] = email

        async def _fake_fetch(**_: Any) -> dict[str, Any]:
            return user

        monkeypatch.setattr(security, "_fetch_identity_user", _fake_fetch)
        return {"Authorization": "Bearer token"}

    return _login


@pytest.fixture
def post_job(api_client: TestClient, machine_headers: dict[str, str]) -> Callable[..., dict[str, Any]]:
    """Drive a texted job through create, parse and approve; returns the approved submission."""

    def _post_job(phone: str = "+13055550100", *, title: str = "Dishwasher", company: str = "Harbor Grill") -> dict[str, Any]:
        sender = api_client.post("/internal/senders", json={"phone": phone, "name": "Dana"}, headers=machine_headers)
        submission = api_client.post(
            "/internal/submissions",
            json={"source": "sms", "sender_id": sender.json()["id"], "raw_content": f"{title} needed at {company}"},
            headers=machine_headers,
        ).json()
        api_client.patch(
            f"/internal/submissions/{submission['id']}/parsed",
            json={"parsed_job": {"title": title, "company": company, "location": "Miami, FL"}},
            headers=machine_headers,
        )
        approved = api_client.post(
            f"/internal/submissions/{submission['id']}/approve",
            json={"approved_by": "workflow"},
            headers=machine_headers,
        )
        return approved.json()

    return _post_job
