from fastapi import APIRouter, Depends, HTTPException, status

from jobboard.core.security import get_human_principal
from jobboard.schemas.profiles import (
    JobPreferencesOut,
    JobPreferencesRequest,
    JobReviewOut,
    JobReviewRequest,
    ProfileOut,
    ProfileUpsertRequest,
    ReviewedJobIdsOut,
    UnsaveJobOut,
)
from jobboard.services.repository import RepositoryUnavailableError, RepositoryValidationError, get_repository

router = APIRouter()


def _require_profile_scope(principal) -> None:
    try:
        principal.require_scopes({"profile:write"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc


@router.get("/profile", response_model=ProfileOut | None)
async def get_profile(principal=Depends(get_human_principal), repository=Depends(get_repository)) -> ProfileOut | None:
    try:
        row = await repository.get_profile_by_user(user_id=principal.subject)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ProfileOut(**row) if row else None


@router.put("/profile", response_model=ProfileOut)
async def put_profile(
    payload: ProfileUpsertRequest,
    principal=Depends(get_human_principal),
    repository=Depends(get_repository),
) -> ProfileOut:
    _require_profile_scope(principal)
    try:
        row = await repository.upsert_profile(user_id=principal.subject, fields=payload.model_dump(exclude_unset=True))
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ProfileOut(**row)


@router.get("/preferences", response_model=JobPreferencesOut | None)
async def get_preferences(
    principal=Depends(get_human_principal),
    repository=Depends(get_repository),
) -> JobPreferencesOut | None:
    try:
        row = await repository.get_job_preferences(user_id=principal.subject)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return JobPreferencesOut(**row) if row else None


@router.put("/preferences", response_model=JobPreferencesOut)
async def put_preferences(
    payload: JobPreferencesRequest,
    principal=Depends(get_human_principal),
    repository=Depends(get_repository),
) -> JobPreferencesOut:
    _require_profile_scope(principal)
    try:
        row = await repository.upsert_job_preferences(user_id=principal.subject, fields=payload.model_dump())
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return JobPreferencesOut(**row)


@router.put("/job-reviews/{job_id}", response_model=JobReviewOut)
async def review_job(
    job_id: str,
    payload: JobReviewRequest,
    principal=Depends(get_human_principal),
    repository=Depends(get_repository),
) -> JobReviewOut:
    _require_profile_scope(principal)
    snapshot = payload.job_snapshot.model_dump() if payload.job_snapshot else None
    try:
        row = await repository.review_job(
            user_id=principal.subject,
            job_id=job_id,
            status=payload.status,
            job_snapshot=snapshot,
        )
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return JobReviewOut(**row)


@router.get("/job-reviews/ids", response_model=ReviewedJobIdsOut)
async def list_reviewed_job_ids(
    principal=Depends(get_human_principal),
    repository=Depends(get_repository),
) -> ReviewedJobIdsOut:
    try:
        job_ids = await repository.list_reviewed_job_ids(user_id=principal.subject)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ReviewedJobIdsOut(job_ids=job_ids)


@router.get("/saved-jobs", response_model=list[JobReviewOut])
async def list_saved_jobs(
    principal=Depends(get_human_principal),
    repository=Depends(get_repository),
) -> list[JobReviewOut]:
    try:
        rows = await repository.list_saved_jobs(user_id=principal.subject)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [JobReviewOut(**row) for row in rows]


@router.delete("/saved-jobs/{job_id}", response_model=UnsaveJobOut)
async def unsave_job(
    job_id: str,
    principal=Depends(get_human_principal),
    repository=Depends(get_repository),
) -> UnsaveJobOut:
    _require_profile_scope(principal)
    try:
        removed = await repository.unsave_job(user_id=principal.subject, job_id=job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return UnsaveJobOut(removed=removed)
