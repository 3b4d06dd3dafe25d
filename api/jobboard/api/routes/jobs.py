from fastapi import APIRouter, Depends, HTTPException, status

from jobboard.core.security import get_human_principal
from jobboard.schemas.applications import ApplicationCreateOut, ApplicationCreateRequest, HasAppliedOut
from jobboard.schemas.submissions import JobForApplyOut
from jobboard.services import applications, submissions
from jobboard.services.events import WorkflowEventError, get_event_client
from jobboard.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    get_repository,
)

router = APIRouter()


@router.get("/{job_id}", response_model=JobForApplyOut)
async def get_job_for_apply(job_id: str, repository=Depends(get_repository)) -> JobForApplyOut:
    try:
        submission = await submissions.get_for_apply(repository, submission_id=job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if submission is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")

    parsed_job = submission["parsed_job"]
    return JobForApplyOut(
        id=submission["id"],
        title=parsed_job.get("title") or "",
        company=parsed_job.get("company") or "",
        description=parsed_job.get("description"),
        location=parsed_job.get("location"),
        employment_type=parsed_job.get("employment_type"),
        salary=parsed_job.get("salary"),
    )


@router.post("/{job_id}/apply", response_model=ApplicationCreateOut, status_code=status.HTTP_201_CREATED)
async def apply_to_job(
    job_id: str,
    payload: ApplicationCreateRequest,
    principal=Depends(get_human_principal),
    repository=Depends(get_repository),
    events=Depends(get_event_client),
) -> ApplicationCreateOut:
    try:
        principal.require_scopes({"applications:write"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        result = await applications.apply_as_user(
            repository,
            events,
            user_id=principal.subject,
            job_submission_id=job_id,
            resume_id=payload.resume_id,
        )
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except WorkflowEventError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return ApplicationCreateOut(**result)


@router.get("/{job_id}/has-applied", response_model=HasAppliedOut)
async def has_applied(
    job_id: str,
    principal=Depends(get_human_principal),
    repository=Depends(get_repository),
) -> HasAppliedOut:
    try:
        applied = await applications.has_user_applied(repository, user_id=principal.subject, job_submission_id=job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return HasAppliedOut(has_applied=applied)
