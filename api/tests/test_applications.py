from __future__ import annotations

from fastapi.testclient import TestClient

from jobboard.services.events import APPLICATION_SUBMITTED


def test_first_applicant_flag_and_duplicate(api_client: TestClient, post_job, login, events) -> None:
    job = post_job()
    first = login("seeker-1")
    api_client.put("/me/profile", json={"name": "First"}, headers=first)

    applied = api_client.post(f"/jobs/{job['id']}/apply", json={}, headers=first)
    assert applied.status_code == 201
    assert applied.json()["is_first_applicant"] is True
    assert api_client.get(f"/jobs/{job['id']}/has-applied", headers=first).json() == {"has_applied": True}

    again = api_client.post(f"/jobs/{job['id']}/apply", json={}, headers=first)
    assert again.status_code == 409
    assert again.json()["detail"] == "Already applied to this job"

    second = login("seeker-2")
    api_client.put("/me/profile", json={"name": "Second"}, headers=second)
    assert api_client.get(f"/jobs/{job['id']}/has-applied", headers=second).json() == {"has_applied": False}
    later = api_client.post(f"/jobs/{job['id']}/apply", json={"resume_id": "resume-9"}, headers=second)
    assert later.json()["is_first_applicant"] is False

    submitted = [data for name, data in events.sent if name == APPLICATION_SUBMITTED]
    assert [data["isFirstApplicant"] for data in submitted] == [True, True, False]
    assert [data["applicationId"] for data in submitted[:2]] == [applied.json()["id"]] * 2
    submitted_ids = [
        event_id for (name, _), event_id in zip(events.sent, events.event_ids) if name == APPLICATION_SUBMITTED
    ]
    assert len(set(submitted_ids)) == 2


def test_apply_retry_after_failed_event_resends_it(api_client: TestClient, post_job, login, events) -> None:
    job = post_job()
    seeker = login("seeker-1")
    api_client.put("/me/profile", json={"name": "Sam"}, headers=seeker)
    events.failures = 1

    failed = api_client.post(f"/jobs/{job['id']}/apply", json={}, headers=seeker)
    retried = api_client.post(f"/jobs/{job['id']}/apply", json={}, headers=seeker)

    assert failed.status_code == 502
    assert retried.status_code == 409
    submitted = [data for name, data in events.sent if name == APPLICATION_SUBMITTED]
    assert len(submitted) == 1
    assert submitted[0]["isFirstApplicant"] is True
    assert events.event_ids[-1] == f"application/submitted:{submitted[0]['applicationId']}"


def test_apply_again_after_employer_decision_sends_nothing(
    api_client: TestClient,
    machine_headers: dict[str, str],
    post_job,
    login,
    events,
) -> None:
    job = post_job()
    seeker = login("seeker-1")
    api_client.put("/me/profile", json={"name": "Sam"}, headers=seeker)
    application_id = api_client.post(f"/jobs/{job['id']}/apply", json={}, headers=seeker).json()["id"]
    api_client.post(f"/internal/applications/{application_id}/passed", headers=machine_headers)

    again = api_client.post(f"/jobs/{job['id']}/apply", json={}, headers=seeker)

    assert again.status_code == 409
    assert len([name for name, _ in events.sent if name == APPLICATION_SUBMITTED]) == 1


def test_apply_requires_a_profile(api_client: TestClient, post_job, login) -> None:
    job = post_job()
    response = api_client.post(f"/jobs/{job['id']}/apply", json={}, headers=login("no-profile"))
    assert response.status_code == 404
    assert response.json()["detail"].startswith("Profile not found")


def test_apply_requires_login(api_client: TestClient, post_job) -> None:
    job = post_job()
    assert api_client.post(f"/jobs/{job['id']}/apply", json={}).status_code == 401


def test_public_job_view(api_client: TestClient, post_job) -> None:
    job = post_job()

    response = api_client.get(f"/jobs/{job['id']}")

    assert response.json() == {
        "id": job["id"],
        "title": "Dishwasher",
        "company": "Harbor Grill",
        "description": None,
        "location": "Miami, FL",
        "employment_type": None,
        "salary": None,
    }
    assert api_client.get("/jobs/unknown").status_code == 404


def test_internal_application_tracking(
    api_client: TestClient,
    machine_headers: dict[str, str],
    post_job,
    login,
) -> None:
    job = post_job()
    api_client.put("/me/profile", json={"name": "Sam", "email": "sam@example.test"}, headers=login("seeker-1"))
    profile = api_client.get("/me/profile", headers=login("seeker-1")).json()

    created = api_client.post(
        "/internal/applications",
        json={"job_submission_id": job["id"], "seeker_profile_id": profile["id"]},
        headers=machine_headers,
    )
    assert created.status_code == 201
    application_id = created.json()["id"]

    count = api_client.get(f"/internal/submissions/{job['id']}/applications/count", headers=machine_headers)
    assert count.json() == {"count": 1}

    connected = api_client.post(f"/internal/applications/{application_id}/connected", headers=machine_headers).json()
    repeated = api_client.post(f"/internal/applications/{application_id}/connected", headers=machine_headers).json()
    assert connected["status"] == "connected"
    assert repeated["connected_at"] == connected["connected_at"]
    assert repeated["seeker_email"] == "sam@example.test"

    listed = api_client.get(f"/internal/submissions/{job['id']}/applications", headers=machine_headers).json()
    assert [row["id"] for row in listed] == [application_id]


def test_passing_twice_keeps_the_first_timestamp(
    api_client: TestClient,
    machine_headers: dict[str, str],
    post_job,
    login,
) -> None:
    job = post_job()
    seeker = login("seeker-1")
    api_client.put("/me/profile", json={"name": "Sam"}, headers=seeker)
    application_id = api_client.post(f"/jobs/{job['id']}/apply", json={}, headers=seeker).json()["id"]

    passed = api_client.post(f"/internal/applications/{application_id}/passed", headers=machine_headers)
    repeated = api_client.post(f"/internal/applications/{application_id}/passed", headers=machine_headers)

    assert passed.status_code == 200
    assert repeated.status_code == 200
    assert passed.json()["status"] == "passed"
    assert passed.json()["passed_at"] is not None
    assert repeated.json()["passed_at"] == passed.json()["passed_at"]


def test_closed_job_stops_accepting_applications(
    api_client: TestClient,
    machine_headers: dict[str, str],
    post_job,
    login,
) -> None:
    job = post_job()
    api_client.post(f"/internal/submissions/{job['id']}/close", json={"reason": "auto_expired"}, headers=machine_headers)
    seeker = login("seeker-1")
    api_client.put("/me/profile", json={"name": "Sam"}, headers=seeker)

    response = api_client.post(f"/jobs/{job['id']}/apply", json={}, headers=seeker)

    assert response.status_code == 409


def test_unknown_application_is_404(api_client: TestClient, machine_headers: dict[str, str]) -> None:
    assert api_client.get("/internal/applications/missing", headers=machine_headers).status_code == 404
    assert api_client.post("/internal/applications/missing/passed", headers=machine_headers).status_code == 404
