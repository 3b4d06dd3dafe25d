from __future__ import annotations

import logging
from typing import Any

from jobboard.services.pipeline import PipelineAdminClient
from jobboard.services.repository import PostgresRepository, RepositoryNotFoundError, RepositoryValidationError

logger = logging.getLogger(__name__)

NUKE_CONFIRMATION = "nuke"


class NukeNotAllowedError(RuntimeError):
    """Raised when a bulk wipe is attempted outside a development environment."""


async def delete_one(
    repository: PostgresRepository,
    pipeline: PipelineAdminClient,
    *,
    job_id: str | None = None,
    typesense_id: str | None = None,
) -> dict[str, Any]:
    """Delete one scraped job from the store, then from the search index and dedup cache.

    The store is the source of truth and is deleted first; a pipeline failure is
    raised after the record is already gone.
    """
    pipeline.ensure_configured()
    if not job_id and not typesense_id:
        raise RepositoryValidationError("Must provide either id or typesenseId")

    if not job_id:
        job = await repository.get_scraped_job_by_typesense_id(typesense_id=typesense_id)
        if job is None:
            raise RepositoryNotFoundError(f"Job not found for typesenseId: {typesense_id}")
        job_id = job["id"]

    result = await repository.delete_scraped_job(job_id=job_id)
    logger.info("scraped job deleted job_id=%s typesense_id=%s", job_id, result["typesense_id"])

    if result["typesense_id"]:
        await pipeline.delete_search_documents(
            typesense_ids=[result["typesense_id"]],
            external_ids=[result["external_id"]],
        )
    return {"success": True, **result}


async def delete_many(
    repository: PostgresRepository,
    pipeline: PipelineAdminClient,
    *,
    job_ids: list[str],
) -> dict[str, Any]:
    pipeline.ensure_configured()
    results = await repository.delete_scraped_jobs(job_ids=job_ids)

    typesense_ids: list[str] = []
    external_ids: list[str] = []
    for item in results:
        if item["deleted"] and item.get("typesense_id"):
            typesense_ids.append(item["typesense_id"])
            external_ids.append(item["external_id"])

    if typesense_ids:
        await pipeline.delete_search_documents(typesense_ids=typesense_ids, external_ids=external_ids)

    deleted = sum(1 for item in results if item["deleted"])
    failed = len(results) - deleted
    logger.info("scraped jobs bulk delete requested=%s deleted=%s failed=%s", len(job_ids), deleted, failed)
    return {"success": True, "deleted": deleted, "failed": failed, "results": results}


async def nuke_all(
    repository: PostgresRepository,
    pipeline: PipelineAdminClient,
    *,
    confirm: str,
    environment: str,
    batch_size: int = 100,
) -> dict[str, Any]:
    if confirm != NUKE_CONFIRMATION:
        raise RepositoryValidationError(f'confirm must be "{NUKE_CONFIRMATION}"')
    if environment.lower() in {"prod", "production"}:
        raise NukeNotAllowedError("nuke is disabled in production")
    pipeline.ensure_configured()

    deleted = 0
    while True:
        batch = await repository.list_scraped_job_ids(limit=batch_size)
        if not batch:
            break
        results = await repository.delete_scraped_jobs(job_ids=batch)
        removed = sum(1 for item in results if item["deleted"])
        deleted += removed
        logger.info("nuke batch deleted=%s total=%s", removed, deleted)
        if removed == 0:
            break

    await pipeline.nuke_all()
    logger.warning("scraped jobs nuked deleted=%s environment=%s", deleted, environment)
    return {"success": True, "deleted": deleted}
