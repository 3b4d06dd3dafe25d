from fastapi import APIRouter, Depends, HTTPException, Query, status

from jobboard.core.security import get_machine_principal
from jobboard.schemas.scraped_jobs import (
    ScrapedJobCreateRequest,
    ScrapedJobEnrichRequest,
    ScrapedJobIndexedRequest,
    ScrapedJobOut,
    ScrapedJobStatsOut,
    ScrapedJobStatus,
    ScrapedJobStatusRequest,
)
from jobboard.services.repository import (
    RepositoryConflictError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()


def _require(principal, scope: str) -> None:
    try:
        principal.require_scopes({scope})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc


@router.post("", response_model=ScrapedJobOut, status_code=status.HTTP_201_CREATED)
async def insert_scraped_job(
    payload: ScrapedJobCreateRequest,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> ScrapedJobOut:
    _require(principal, "scraped_jobs:write")
    try:
        row = await repository.insert_scraped_job(fields=payload.model_dump())
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ScrapedJobOut(**row)


@router.get("", response_model=list[ScrapedJobOut])
async def list_scraped_jobs(
    job_status: ScrapedJobStatus = Query(alias="status"),
    limit: int | None = Query(default=None, ge=1, le=1000),
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> list[ScrapedJobOut]:
    _require(principal, "scraped_jobs:read")
    try:
        rows = await repository.list_scraped_jobs_by_status(status=job_status, limit=limit)
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [ScrapedJobOut(**row) for row in rows]


@router.get("/failed", response_model=list[ScrapedJobOut])
async def list_recent_failed(
    limit: int = Query(default=100, ge=1, le=1000),
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> list[ScrapedJobOut]:
    _require(principal, "scraped_jobs:read")
    try:
        rows = await repository.list_recent_failed_scraped_jobs(limit=limit)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [ScrapedJobOut(**row) for row in rows]


@router.get("/stats", response_model=ScrapedJobStatsOut)
async def get_stats(
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> ScrapedJobStatsOut:
    _require(principal, "scraped_jobs:read")
    try:
        stats = await repository.get_scraped_job_stats()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ScrapedJobStatsOut(**stats)


@router.get("/by-external-id", response_model=ScrapedJobOut | None)
async def get_by_external_id(
    external_id: str = Query(min_length=1),
    source: str = Query(min_length=1),
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> ScrapedJobOut | None:
    _require(principal, "scraped_jobs:read")
    try:
        row = await repository.get_scraped_job_by_external_id(external_id=external_id, source=source)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ScrapedJobOut(**row) if row else None


@router.get("/{job_id}", response_model=ScrapedJobOut)
async def get_scraped_job(
    job_id: str,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> ScrapedJobOut:
    _require(principal, "scraped_jobs:read")
    try:
        row = await repository.get_scraped_job(job_id=job_id)
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ScrapedJobOut(**row)


@router.post("/{job_id}/enrich", response_model=ScrapedJobOut)
async def enrich_scraped_job(
    job_id: str,
    payload: ScrapedJobEnrichRequest,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> ScrapedJobOut:
    _require(principal, "scraped_jobs:write")
    try:
        row = await repository.enrich_scraped_job(job_id=job_id, signals=payload.model_dump(exclude_unset=True))
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ScrapedJobOut(**row)


@router.post("/{job_id}/indexed", response_model=ScrapedJobOut)
async def mark_indexed(
    job_id: str,
    payload: ScrapedJobIndexedRequest,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> ScrapedJobOut:
    _require(principal, "scraped_jobs:write")
    try:
        row = await repository.mark_scraped_job_indexed(job_id=job_id, typesense_id=payload.typesense_id)
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ScrapedJobOut(**row)


@router.patch("/{job_id}/status", response_model=ScrapedJobOut)
async def update_status(
    job_id: str,
    payload: ScrapedJobStatusRequest,
    principal=Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> ScrapedJobOut:
    _require(principal, "scraped_jobs:write")
    try:
        row = await repository.update_scraped_job_status(
            job_id=job_id,
            status=payload.status,
            failure_reason=payload.failure_reason,
            failure_stage=payload.failure_stage,
        )
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ScrapedJobOut(**row)
