from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Any

from jobboard.core.config import Settings
from jobboard.core.tokens import candidates_link, create_token, setup_link
from jobboard.services.events import APPROVAL_CLICKED, WorkflowEventClient
from jobboard.services.repository import PostgresRepository, RepositoryConflictError, RepositoryNotFoundError

logger = logging.getLogger(__name__)

UI_DENY_REASON = "Denied via admin UI"


async def _require_pending_approval(repository: PostgresRepository, submission_id: str, verb: str) -> dict[str, Any]:
    submission = await repository.get_submission(submission_id=submission_id)
    if submission is None:
        raise RepositoryNotFoundError("Submission not found")
    if submission["status"] != "pending_approval":
        raise RepositoryConflictError(f"Cannot {verb}: status is {submission['status']}")
    return submission


async def approve_from_ui(
    repository: PostgresRepository,
    events: WorkflowEventClient,
    *,
    submission_id: str,
    approved_by: str,
) -> None:
    """Hand an admin's approval to the waiting submission workflow.

    The workflow owns the actual state change; this only checks that the
    submission is still awaiting a decision.
    """
    await _require_pending_approval(repository, submission_id, "approve")
    await events.send(
        APPROVAL_CLICKED,
        {"approvalId": submission_id, "decision": "approved", "approvedBy": approved_by},
    )
    logger.info("submission approval sent submission_id=%s approved_by=%s", submission_id, approved_by)


async def deny_from_ui(
    repository: PostgresRepository,
    events: WorkflowEventClient,
    *,
    submission_id: str,
    reason: str | None = None,
) -> None:
    await _require_pending_approval(repository, submission_id, "deny")
    await events.send(
        APPROVAL_CLICKED,
        {"approvalId": submission_id, "decision": "denied", "denyReason": reason or UI_DENY_REASON},
    )
    logger.info("submission denial sent submission_id=%s", submission_id)


async def get_for_apply(repository: PostgresRepository, *, submission_id: str) -> dict[str, Any] | None:
    submission = await repository.get_submission(submission_id=submission_id)
    if submission is None or submission["status"] != "approved" or not submission["parsed_job"]:
        return None
    return submission


async def issue_links(
    repository: PostgresRepository,
    settings: Settings,
    *,
    submission_id: str,
) -> dict[str, Any]:
    submission = await repository.get_submission(submission_id=submission_id)
    if submission is None:
        raise RepositoryNotFoundError("Submission not found")
    if not submission["sender_id"]:
        raise RepositoryConflictError("Submission has no sender")

    ttl = timedelta(days=settings.magic_link_ttl_days)
    issued_at = int(time.time() * 1000)
    token = create_token(
        submission["id"],
        submission["sender_id"],
        secret=settings.token_signing_secret,
        ttl=ttl,
        now_ms=issued_at,
    )
    logger.info("magic link issued submission_id=%s sender_id=%s", submission["id"], submission["sender_id"])
    return {
        "token": token,
        "candidates_url": candidates_link(settings.app_base_url, token),
        "setup_url": setup_link(settings.app_base_url, token),
        "expires_at": issued_at + int(ttl.total_seconds() * 1000),
    }
