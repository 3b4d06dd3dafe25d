from __future__ import annotations

import logging
from typing import Any

from jobboard.services.events import JOB_SUBMITTED, WorkflowEventClient
from jobboard.services.repository import PostgresRepository, RepositoryConflictError

logger = logging.getLogger(__name__)

CLOSE_COMMANDS = {"STOP", "CLOSE"}
_MESSAGE_STATUS_BY_SENDER = {"approved": "approved", "blocked": "rejected"}


async def handle_inbound_sms(
    repository: PostgresRepository,
    events: WorkflowEventClient,
    *,
    phone: str,
    body: str,
    message_sid: str,
) -> dict[str, Any]:
    """Record an employer's text message and start the posting workflow for it.

    ``STOP`` or ``CLOSE`` closes the sender's most recent open posting instead.
    Messages from blocked senders are kept for review but never become submissions.
    """
    if body.strip().upper() in CLOSE_COMMANDS:
        return await _close_latest_posting(repository, phone=phone)

    sender = await repository.get_or_create_sender(phone=phone)
    message_status = _MESSAGE_STATUS_BY_SENDER.get(sender["status"], "pending_review")

    try:
        message = await repository.create_inbound_message(
            phone=phone,
            body=body,
            twilio_message_sid=message_sid,
            sender_id=sender["id"],
            status=message_status,
        )
    except RepositoryConflictError:
        return await _redeliver(repository, events, message_sid=message_sid)

    if message_status == "rejected":
        logger.info("inbound sms from blocked sender sender_id=%s", sender["id"])
        return {"action": "rejected", "message_id": message["id"], "submission_id": None}

    submission = await _start_submission(repository, events, message=message, body=body)
    logger.info(
        "inbound sms recorded message_id=%s submission_id=%s sender_status=%s",
        message["id"],
        submission["id"],
        sender["status"],
    )
    return {"action": "submitted", "message_id": message["id"], "submission_id": submission["id"]}


def submitted_event_id(submission_id: str) -> str:
    return f"{JOB_SUBMITTED}:{submission_id}"


async def _start_submission(
    repository: PostgresRepository,
    events: WorkflowEventClient,
    *,
    message: dict[str, Any],
    body: str,
) -> dict[str, Any]:
    submission = await repository.create_submission(source="sms", raw_content=body, sender_id=message["sender_id"])
    await repository.link_inbound_message_submission(message_id=message["id"], submission_id=submission["id"])
    await _send_submitted(events, submission["id"])
    return submission


async def _send_submitted(events: WorkflowEventClient, submission_id: str) -> None:
    await events.send(
        JOB_SUBMITTED,
        {"submissionId": submission_id, "source": "sms"},
        event_id=submitted_event_id(submission_id),
    )


async def _redeliver(
    repository: PostgresRepository,
    events: WorkflowEventClient,
    *,
    message_sid: str,
) -> dict[str, Any]:
    """Finish the work of an earlier delivery of the same message.

    A redelivery whose submission is still waiting to be parsed re-sends the
    submitted event under the same id, so the workflow runtime starts it once.
    """
    message = await repository.get_inbound_message_by_sid(twilio_message_sid=message_sid)
    if message is None or message["status"] == "rejected":
        logger.info("inbound sms duplicate delivery message_sid=%s", message_sid)
        return {"action": "duplicate", "message_id": message["id"] if message else None, "submission_id": None}

    submission_id = message["submission_id"]
    if submission_id is None:
        submission = await _start_submission(repository, events, message=message, body=message["body"])
        submission_id = submission["id"]
    else:
        submission = await repository.get_submission(submission_id=submission_id)
        if submission is not None and submission["status"] == "pending_parse":
            await _send_submitted(events, submission_id)

    logger.info(
        "inbound sms duplicate delivery message_sid=%s message_id=%s submission_id=%s",
        message_sid,
        message["id"],
        submission_id,
    )
    return {"action": "duplicate", "message_id": message["id"], "submission_id": submission_id}


async def _close_latest_posting(repository: PostgresRepository, *, phone: str) -> dict[str, Any]:
    sender = await repository.get_sender_by_phone(phone=phone)
    if sender is None:
        return {"action": "ignored", "message_id": None, "submission_id": None}
    open_postings = await repository.list_open_submissions_by_sender(sender_id=sender["id"])
    if not open_postings:
        return {"action": "ignored", "message_id": None, "submission_id": None}

    latest = open_postings[0]
    await repository.close_submission(submission_id=latest["id"], reason="employer_request")
    logger.info("posting closed by sms submission_id=%s sender_id=%s", latest["id"], sender["id"])
    return {"action": "closed", "message_id": None, "submission_id": latest["id"]}
