"""Magic-link flows for employers who posted a job by SMS or form.

Employers never log in. Every call carries the signed token issued when their
submission was approved, and each call re-checks the token, the employer's
vetting status and that the job or application belongs to the token's sender.
"""

from __future__ import annotations

import logging
from typing import Any

from jobboard.core.tokens import ExpiredTokenError, InvalidTokenError, TokenPayload, parse_token, verify_token
from jobboard.services.events import EMPLOYER_ACCOUNT_CREATED, EMPLOYER_APPROVED, WorkflowEventClient
from jobboard.services.repository import (
    PostgresRepository,
    RepositoryForbiddenError,
    RepositoryNotFoundError,
)

logger = logging.getLogger(__name__)


async def get_job_with_applications(
    repository: PostgresRepository,
    *,
    token: str,
    secret: str | None,
) -> dict[str, Any]:
    payload = parse_token(token, secret=secret)
    if payload is None:
        logger.warning("employer portal rejected reason=invalid_token")
        return {"error": "invalid_token"}
    if payload.is_expired():
        logger.warning("employer portal rejected reason=token_expired submission_id=%s", payload.submission_id)
        return {"error": "token_expired"}

    sender = await repository.get_sender(sender_id=payload.sender_id)
    if sender is None:
        logger.warning("employer portal rejected reason=unknown_sender sender_id=%s", payload.sender_id)
        return {"error": "invalid_token"}

    employer = await repository.get_employer_by_sender(sender_id=payload.sender_id)
    if employer is None:
        return {"error": "employer_not_found"}
    if employer["status"] == "pending_review":
        return {"error": "employer_pending"}
    if employer["status"] == "rejected":
        logger.warning("employer portal rejected reason=employer_rejected employer_id=%s", employer["id"])
        return {"error": "employer_rejected"}

    job = await repository.get_submission(submission_id=payload.submission_id)
    if job is None:
        return {"error": "job_not_found"}
    if job["sender_id"] != payload.sender_id:
        logger.warning(
            "employer portal rejected reason=unauthorized submission_id=%s sender_id=%s",
            payload.submission_id,
            payload.sender_id,
        )
        return {"error": "unauthorized"}

    applications = await repository.list_applications_for_job(job_submission_id=job["id"])
    parsed_job = job["parsed_job"] or {}
    return {
        "job": {
            "id": job["id"],
            "title": parsed_job.get("title"),
            "company": parsed_job.get("company"),
            "status": job["status"],
        },
        "applications": applications,
        "employer": {"name": employer["name"], "company": employer["company"]},
    }


async def _authorize_application(
    repository: PostgresRepository,
    *,
    token: str,
    secret: str | None,
    application_id: str,
) -> TokenPayload:
    payload = verify_token(token, secret=secret)

    employer = await repository.get_employer_by_sender(sender_id=payload.sender_id)
    if employer is None or employer["status"] != "approved":
        logger.warning(
            "employer action rejected reason=employer_not_approved sender_id=%s employer_id=%s",
            payload.sender_id,
            employer["id"] if employer else None,
        )
        raise RepositoryForbiddenError("Employer not approved")

    application = await repository.get_application(application_id=application_id)
    if application is None:
        raise RepositoryNotFoundError("Application not found")
    if application["job_submission_id"] != payload.submission_id:
        logger.warning(
            "employer action rejected reason=unauthorized application_id=%s submission_id=%s",
            application_id,
            payload.submission_id,
        )
        raise RepositoryForbiddenError("Unauthorized")
    return payload


async def connect(
    repository: PostgresRepository,
    *,
    token: str,
    secret: str | None,
    application_id: str,
) -> dict[str, Any]:
    await _authorize_application(repository, token=token, secret=secret, application_id=application_id)
    application = await repository.mark_application_connected(application_id=application_id)
    logger.info("application connected application_id=%s", application_id)
    return {"seeker_email": application["seeker_email"], "seeker_name": application["seeker_name"]}


async def pass_application(
    repository: PostgresRepository,
    *,
    token: str,
    secret: str | None,
    application_id: str,
) -> None:
    await _authorize_application(repository, token=token, secret=secret, application_id=application_id)
    await repository.mark_application_passed(application_id=application_id)
    logger.info("application passed application_id=%s", application_id)


async def get_sender_for_setup(
    repository: PostgresRepository,
    *,
    token: str,
    secret: str | None,
) -> dict[str, Any] | None:
    """Prefill data for the employer signup form, or ``None`` for a bad or expired token."""
    payload = parse_token(token, secret=secret)
    if payload is None or payload.is_expired():
        return None
    sender = await repository.get_sender(sender_id=payload.sender_id)
    if sender is None:
        return None
    employer = await repository.get_employer_by_sender(sender_id=payload.sender_id)
    return {
        "sender_id": sender["id"],
        "submission_id": payload.submission_id,
        "prefill": {
            "name": sender["name"] or "",
            "email": sender["email"] or "",
            "phone": sender["phone"] or "",
            "company": sender["company"] or "",
        },
        "already_setup": employer is not None,
        "employer_status": employer["status"] if employer else None,
    }


async def create_from_signup(
    repository: PostgresRepository,
    events: WorkflowEventClient,
    *,
    token: str,
    secret: str | None,
    name: str,
    email: str,
    company: str,
    role: str | None = None,
    website: str | None = None,
) -> dict[str, Any]:
    payload = parse_token(token, secret=secret)
    if payload is None:
        raise InvalidTokenError()
    if payload.is_expired():
        raise ExpiredTokenError()
    sender = await repository.get_sender(sender_id=payload.sender_id)
    if sender is None:
        logger.warning("employer signup rejected reason=unknown_sender sender_id=%s", payload.sender_id)
        raise InvalidTokenError()

    employer, already_existed = await repository.create_employer_for_sender(
        sender_id=payload.sender_id,
        name=name,
        email=email,
        company=company,
        role=role,
        website=website,
    )
    if not already_existed:
        logger.info("employer created employer_id=%s sender_id=%s", employer["id"], payload.sender_id)
        await events.send(
            EMPLOYER_ACCOUNT_CREATED,
            {
                "employerId": employer["id"],
                "senderId": payload.sender_id,
                "jobSubmissionId": payload.submission_id,
            },
        )
    return {"employer_id": employer["id"], "already_existed": already_existed}


async def approve_employer(
    repository: PostgresRepository,
    events: WorkflowEventClient,
    *,
    employer_id: str,
    approved_by: str,
) -> dict[str, Any]:
    employer, changed = await repository.approve_employer(employer_id=employer_id, approved_by=approved_by)
    if changed:
        logger.info("employer approved employer_id=%s approved_by=%s", employer_id, approved_by)
        await events.send(EMPLOYER_APPROVED, {"employerId": employer_id, "approvedBy": approved_by})
    return employer
