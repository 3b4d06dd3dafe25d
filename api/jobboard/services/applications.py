from __future__ import annotations

import logging
from typing import Any

from jobboard.services.events import APPLICATION_SUBMITTED, WorkflowEventClient
from jobboard.services.repository import PostgresRepository, RepositoryConflictError, RepositoryNotFoundError

logger = logging.getLogger(__name__)


def submitted_event_id(application_id: str) -> str:
    return f"{APPLICATION_SUBMITTED}:{application_id}"


async def submit_application(
    repository: PostgresRepository,
    events: WorkflowEventClient,
    *,
    job_submission_id: str,
    seeker_profile_id: str,
    resume_id: str | None = None,
) -> dict[str, Any]:
    """Create an application and notify the workflow runtime.

    Applying again is still rejected, but while the first application is
    pending its event is re-sent under the same id so a send that failed the
    first time is not lost.
    """
    try:
        result = await repository.create_application(
            job_submission_id=job_submission_id,
            seeker_profile_id=seeker_profile_id,
            resume_id=resume_id,
        )
    except RepositoryConflictError:
        existing = await repository.get_application_for_seeker(
            job_submission_id=job_submission_id,
            seeker_profile_id=seeker_profile_id,
        )
        if existing is not None and existing["status"] == "pending":
            logger.info("application resubmitted application_id=%s job_id=%s", existing["id"], job_submission_id)
            await _send_submitted(
                events,
                application_id=existing["id"],
                job_submission_id=job_submission_id,
                seeker_profile_id=seeker_profile_id,
                is_first_applicant=existing["is_first_applicant"],
            )
        raise

    logger.info(
        "application created application_id=%s job_id=%s first_applicant=%s",
        result["id"],
        job_submission_id,
        result["is_first_applicant"],
    )
    await _send_submitted(
        events,
        application_id=result["id"],
        job_submission_id=job_submission_id,
        seeker_profile_id=seeker_profile_id,
        is_first_applicant=result["is_first_applicant"],
    )
    return result


async def _send_submitted(
    events: WorkflowEventClient,
    *,
    application_id: str,
    job_submission_id: str,
    seeker_profile_id: str,
    is_first_applicant: bool,
) -> None:
    await events.send(
        APPLICATION_SUBMITTED,
        {
            "applicationId": application_id,
            "jobSubmissionId": job_submission_id,
            "seekerProfileId": seeker_profile_id,
            "isFirstApplicant": is_first_applicant,
        },
        event_id=submitted_event_id(application_id),
    )


async def apply_as_user(
    repository: PostgresRepository,
    events: WorkflowEventClient,
    *,
    user_id: str,
    job_submission_id: str,
    resume_id: str | None = None,
) -> dict[str, Any]:
    profile = await repository.get_profile_by_user(user_id=user_id)
    if profile is None:
        raise RepositoryNotFoundError("Profile not found - please complete your profile first")
    return await submit_application(
        repository,
        events,
        job_submission_id=job_submission_id,
        seeker_profile_id=profile["id"],
        resume_id=resume_id,
    )


async def has_user_applied(repository: PostgresRepository, *, user_id: str, job_submission_id: str) -> bool:
    profile = await repository.get_profile_by_user(user_id=user_id)
    if profile is None:
        return False
    return await repository.has_applied(job_submission_id=job_submission_id, seeker_profile_id=profile["id"])
