from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest
from fastapi.testclient import TestClient

from jobboard.core.config import get_settings
from jobboard.core.tokens import create_token


@pytest.fixture
def portal(api_client: TestClient, machine_headers: dict[str, str], post_job, login) -> dict[str, Any]:
    """An approved employer with one job and one applicant."""
    job = post_job()
    token = api_client.post(f"/internal/submissions/{job['id']}/magic-links", headers=machine_headers).json()["token"]
    employer = api_client.post(
        "/employer/signup",
        json={"token": token, "name": "Dana", "email": "dana@harbor.test", "company": "Harbor Grill"},
    ).json()

    seeker = login("seeker-1")
    api_client.put("/me/profile", json={"name": "Sam Seeker", "email": "sam@example.test"}, headers=seeker)
    application = api_client.post(f"/jobs/{job['id']}/apply", json={}, headers=seeker).json()
    return {"job": job, "token": token, "employer_id": employer["employer_id"], "application_id": application["id"]}


def _approve(api_client: TestClient, login, employer_id: str) -> None:
    api_client.post(f"/admin/employers/{employer_id}/approve", headers=login("admin-1", role="admin"))


def test_candidates_list_applicants(api_client: TestClient, portal: dict[str, Any], login) -> None:
    _approve(api_client, login, portal["employer_id"])

    body = api_client.get("/employer/candidates", params={"token": portal["token"]}).json()

    [application] = body["applications"]
    assert application["id"] == portal["application_id"]
    assert application["seeker_name"] == "Sam Seeker"
    assert application["status"] == "pending"


def test_connect_reveals_seeker_contact(api_client: TestClient, portal: dict[str, Any], login) -> None:
    _approve(api_client, login, portal["employer_id"])

    response = api_client.post(
        f"/employer/applications/{portal['application_id']}/connect",
        json={"token": portal["token"]},
    )

    assert response.status_code == 200
    assert response.json() == {"seeker_email": "sam@example.test", "seeker_name": "Sam Seeker"}


def test_pass_marks_application(
    api_client: TestClient,
    portal: dict[str, Any],
    login,
    repository,
) -> None:
    _approve(api_client, login, portal["employer_id"])

    response = api_client.post(
        f"/employer/applications/{portal['application_id']}/pass",
        json={"token": portal["token"]},
    )

    assert response.status_code == 204
    assert repository.applications[portal["application_id"]]["status"] == "passed"


def test_pending_employer_cannot_act(api_client: TestClient, portal: dict[str, Any]) -> None:
    response = api_client.post(
        f"/employer/applications/{portal['application_id']}/connect",
        json={"token": portal["token"]},
    )
    assert response.status_code == 403
    assert response.json()["detail"] == "Employer not approved"


def test_token_for_another_job_is_unauthorized(
    api_client: TestClient,
    machine_headers: dict[str, str],
    portal: dict[str, Any],
    post_job,
    login,
) -> None:
    _approve(api_client, login, portal["employer_id"])
    other_job = post_job(title="Host")
    other_token = api_client.post(
        f"/internal/submissions/{other_job['id']}/magic-links", headers=machine_headers
    ).json()["token"]

    response = api_client.post(
        f"/employer/applications/{portal['application_id']}/connect",
        json={"token": other_token},
    )

    assert response.status_code == 403
    assert response.json()["detail"] == "Unauthorized"


def test_unknown_application_is_404(api_client: TestClient, portal: dict[str, Any], login) -> None:
    _approve(api_client, login, portal["employer_id"])
    response = api_client.post("/employer/applications/missing/pass", json={"token": portal["token"]})
    assert response.status_code == 404


def test_garbage_token(api_client: TestClient, portal: dict[str, Any]) -> None:
    assert api_client.get("/employer/candidates", params={"token": "garbage"}).json()["error"] == "invalid_token"
    assert api_client.get("/employer/setup", params={"token": "garbage"}).json() is None
    response = api_client.post(
        f"/employer/applications/{portal['application_id']}/connect",
        json={"token": "garbage"},
    )
    assert response.status_code == 401


def test_expired_token(api_client: TestClient, portal: dict[str, Any], login) -> None:
    _approve(api_client, login, portal["employer_id"])
    expired = create_token(
        portal["job"]["id"],
        portal["job"]["sender_id"],
        secret=get_settings().token_signing_secret,
        ttl=timedelta(days=-1),
    )

    assert api_client.get("/employer/candidates", params={"token": expired}).json()["error"] == "token_expired"
    response = api_client.post(
        f"/employer/applications/{portal['application_id']}/connect",
        json={"token": expired},
    )
    assert response.status_code == 401
    assert response.json()["detail"] == "Token expired"


def test_rejected_employer(api_client: TestClient, portal: dict[str, Any], login) -> None:
    api_client.post(f"/admin/employers/{portal['employer_id']}/reject", headers=login("admin-1", role="admin"))
    body = api_client.get("/employer/candidates", params={"token": portal["token"]}).json()
    assert body["error"] == "employer_rejected"


def test_short_signing_secret_only_fails_token_routes(api_client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TOKEN_SIGNING_SECRET", "short")
    get_settings.cache_clear()

    response = api_client.get("/employer/candidates", params={"token": "abc.def"})

    assert response.status_code == 503
    assert "at least 32 characters" in response.json()["detail"]
    assert api_client.get("/healthz").status_code == 200
