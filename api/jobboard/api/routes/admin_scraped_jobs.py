import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from jobboard.core.config import Settings, get_settings
from jobboard.core.security import get_admin_principal
from jobboard.schemas.scraped_jobs import (
    CacheClearRequest,
    NukeAllOut,
    NukeAllRequest,
    ScrapedJobBulkDeleteOut,
    ScrapedJobBulkDeleteRequest,
    ScrapedJobDeleteOut,
    ScrapedJobDeleteRequest,
    ScrapedJobOut,
    ScrapedJobStatsOut,
)
from jobboard.services import scraped_jobs_admin
from jobboard.services.pipeline import (
    PipelineConfigurationError,
    PipelineRequestError,
    PipelineValidationError,
    get_pipeline_client,
)
from jobboard.services.repository import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)
from jobboard.services.search import (
    SearchConfigurationError,
    SearchRequestError,
    build_search_filters,
    get_search_client,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/search")
async def search_scraped_jobs(
    request: Request,
    q: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    per_page: int = Query(default=25, ge=1, le=250),
    principal=Depends(get_admin_principal),
    search_client=Depends(get_search_client),
) -> dict[str, Any]:
    plan = build_search_filters(dict(request.query_params))
    try:
        return await search_client.search(q=q, plan=plan, page=page, per_page=per_page)
    except SearchConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except SearchRequestError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.get("/stats", response_model=ScrapedJobStatsOut)
async def get_stats(
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> ScrapedJobStatsOut:
    try:
        stats = await repository.get_scraped_job_stats()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ScrapedJobStatsOut(**stats)


@router.get("/failed", response_model=list[ScrapedJobOut])
async def list_recent_failed(
    limit: int = Query(default=100, ge=1, le=1000),
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
) -> list[ScrapedJobOut]:
    try:
        rows = await repository.list_recent_failed_scraped_jobs(limit=limit)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [ScrapedJobOut(**row) for row in rows]


@router.post("/delete", response_model=ScrapedJobDeleteOut)
async def delete_scraped_job(
    payload: ScrapedJobDeleteRequest,
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
    pipeline=Depends(get_pipeline_client),
) -> ScrapedJobDeleteOut:
    try:
        result = await scraped_jobs_admin.delete_one(
            repository,
            pipeline,
            job_id=payload.id,
            typesense_id=payload.typesense_id,
        )
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (RepositoryUnavailableError, PipelineConfigurationError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except PipelineRequestError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    logger.info("admin deleted scraped job admin=%s external_id=%s", principal.email, result["external_id"])
    return ScrapedJobDeleteOut(**result)


@router.post("/bulk-delete", response_model=ScrapedJobBulkDeleteOut)
async def bulk_delete_scraped_jobs(
    payload: ScrapedJobBulkDeleteRequest,
    principal=Depends(get_admin_principal),
    repository=Depends(get_repository),
    pipeline=Depends(get_pipeline_client),
) -> ScrapedJobBulkDeleteOut:
    try:
        result = await scraped_jobs_admin.delete_many(repository, pipeline, job_ids=payload.ids)
    except (RepositoryUnavailableError, PipelineConfigurationError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except PipelineRequestError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return ScrapedJobBulkDeleteOut(**result)


@router.post("/nuke", response_model=NukeAllOut)
async def nuke_all_scraped_jobs(
    payload: NukeAllRequest,
    principal=Depends(get_admin_principal),
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
    pipeline=Depends(get_pipeline_client),
) -> NukeAllOut:
    try:
        result = await scraped_jobs_admin.nuke_all(
            repository,
            pipeline,
            confirm=payload.confirm,
            environment=settings.environment,
            batch_size=settings.nuke_batch_size,
        )
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except scraped_jobs_admin.NukeNotAllowedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    except (RepositoryUnavailableError, PipelineConfigurationError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except PipelineRequestError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return NukeAllOut(**result)


@router.get("/cache/stats")
async def get_cache_stats(
    principal=Depends(get_admin_principal),
    pipeline=Depends(get_pipeline_client),
) -> Any:
    try:
        return await pipeline.get_cache_stats()
    except PipelineConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except PipelineRequestError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.post("/cache/clear")
async def clear_cache(
    payload: CacheClearRequest,
    principal=Depends(get_admin_principal),
    pipeline=Depends(get_pipeline_client),
) -> Any:
    try:
        result = await pipeline.clear_cache(
            clear_all=payload.clear_all,
            start_date=payload.start_date,
            end_date=payload.end_date,
        )
    except PipelineValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except PipelineConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except PipelineRequestError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    logger.info("admin cleared dedup cache admin=%s clear_all=%s", principal.email, bool(payload.clear_all))
    return result


@router.get("/fair-chance/stats")
async def get_fair_chance_stats(
    principal=Depends(get_admin_principal),
    pipeline=Depends(get_pipeline_client),
) -> Any:
    try:
        return await pipeline.get_fair_chance_stats()
    except PipelineConfigurationError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except PipelineRequestError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
