from __future__ import annotations

import asyncio
from typing import Any

from fastapi.testclient import TestClient

from jobboard.services.events import JOB_SUBMITTED


def _sms(api_client: TestClient, headers: dict[str, str], *, body: str, sid: str, phone: str = "+13055550100") -> Any:
    return api_client.post(
        "/internal/webhooks/sms",
        json={"phone": phone, "body": body, "message_sid": sid},
        headers=headers,
    )


def test_new_number_becomes_a_submission(
    api_client: TestClient,
    machine_headers: dict[str, str],
    repository,
    events,
) -> None:
    response = _sms(api_client, machine_headers, body="Hiring a dishwasher, $15/hr", sid="SM1")

    body = response.json()
    assert response.status_code == 200
    assert body["action"] == "submitted"
    assert repository.inbound_messages[body["message_id"]]["status"] == "pending_review"
    assert repository.submissions[body["submission_id"]]["status"] == "pending_parse"
    assert events.sent == [(JOB_SUBMITTED, {"submissionId": body["submission_id"], "source": "sms"})]


def test_redelivered_message_is_a_duplicate(
    api_client: TestClient,
    machine_headers: dict[str, str],
    repository,
    events,
) -> None:
    first = _sms(api_client, machine_headers, body="Hiring a dishwasher", sid="SM1").json()
    response = _sms(api_client, machine_headers, body="Hiring a dishwasher", sid="SM1")

    assert response.json() == {
        "action": "duplicate",
        "message_id": first["message_id"],
        "submission_id": first["submission_id"],
    }
    assert len(repository.submissions) == 1
    assert events.event_ids == [f"job/submitted:{first['submission_id']}"] * 2


def test_redelivery_after_failed_event_starts_the_workflow(
    api_client: TestClient,
    machine_headers: dict[str, str],
    repository,
    events,
) -> None:
    events.failures = 1

    failed = _sms(api_client, machine_headers, body="Hiring a line cook", sid="SM8")
    retried = _sms(api_client, machine_headers, body="Hiring a line cook", sid="SM8")

    assert failed.status_code == 502
    assert retried.status_code == 200
    submission_id = retried.json()["submission_id"]
    assert [row["status"] for row in repository.submissions.values()] == ["pending_parse"]
    assert events.sent == [(JOB_SUBMITTED, {"submissionId": submission_id, "source": "sms"})]
    assert events.event_ids == [f"job/submitted:{submission_id}"]


def test_redelivery_of_a_parsed_submission_sends_nothing(
    api_client: TestClient,
    machine_headers: dict[str, str],
    events,
) -> None:
    first = _sms(api_client, machine_headers, body="Hiring a host", sid="SM9").json()
    api_client.patch(
        f"/internal/submissions/{first['submission_id']}/parsed",
        json={"parsed_job": {"title": "Host", "company": "Harbor Grill"}},
        headers=machine_headers,
    )

    _sms(api_client, machine_headers, body="Hiring a host", sid="SM9")

    assert len(events.sent) == 1


def test_approved_sender_messages_are_pre_approved(
    api_client: TestClient,
    machine_headers: dict[str, str],
    repository,
    post_job,
) -> None:
    post_job()

    response = _sms(api_client, machine_headers, body="Also need a busser", sid="SM2")

    assert repository.inbound_messages[response.json()["message_id"]]["status"] == "approved"


def test_blocked_sender_is_recorded_but_not_submitted(
    api_client: TestClient,
    machine_headers: dict[str, str],
    repository,
    events,
) -> None:
    async def block() -> None:
        sender = await repository.get_or_create_sender(phone="+13055550100")
        await repository.update_sender_status(sender_id=sender["id"], status="blocked")

    asyncio.run(block())

    response = _sms(api_client, machine_headers, body="Buy followers now", sid="SM3")

    assert response.json()["action"] == "rejected"
    assert repository.submissions == {}
    assert events.sent == []


def test_stop_closes_the_latest_open_posting(
    api_client: TestClient,
    machine_headers: dict[str, str],
    repository,
    post_job,
) -> None:
    job = post_job()

    response = _sms(api_client, machine_headers, body=" stop ", sid="SM4")

    assert response.json() == {"action": "closed", "message_id": None, "submission_id": job["id"]}
    assert repository.submissions[job["id"]]["closed_reason"] == "employer_request"
    again = _sms(api_client, machine_headers, body="CLOSE", sid="SM5")
    assert again.json()["action"] == "ignored"


def test_stop_from_unknown_number_is_ignored(api_client: TestClient, machine_headers: dict[str, str], repository) -> None:
    response = _sms(api_client, machine_headers, body="STOP", sid="SM6", phone="+19995550000")
    assert response.json()["action"] == "ignored"
    assert repository.senders == {}


def test_webhook_scope_is_required(api_client: TestClient) -> None:
    headers = {"X-Module-Id": "read-only-module", "X-API-Key": "read-only-key"}
    assert _sms(api_client, headers, body="hello", sid="SM7").status_code == 403
