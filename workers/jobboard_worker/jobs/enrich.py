from __future__ import annotations

import logging
from typing import Any

from jobboard_worker.jobs.documents import to_search_document, transit_signals
from jobboard_worker.jobs.employers import FairChanceEmployers
from jobboard_worker.jobs.second_chance import assess_job
from jobboard_worker.jobs.shifts import extract_shifts
from jobboard_worker.services.api_client import ScrapedJobsClient
from jobboard_worker.services.search_client import SearchIndexClient

logger = logging.getLogger(__name__)


def build_enrichment(job: dict[str, Any], employers: FairChanceEmployers) -> dict[str, Any]:
    signals: dict[str, Any] = {}
    signals.update(extract_shifts(job).as_signals())
    signals.update(assess_job(job, employers.lookup(job.get("company"))))
    signals.update(transit_signals(job))
    return signals


async def execute_enrichment(
    job: dict[str, Any],
    *,
    api: ScrapedJobsClient,
    search: SearchIndexClient,
    employers: FairChanceEmployers,
) -> dict[str, Any]:
    """Enrich one scraped job and push it into the search index.

    A failing stage marks the record ``failed`` with the stage name so it can
    be retried from the admin failed-jobs view.
    """
    job_id = job["id"]
    stage = "enrich"
    try:
        enriched = await api.enrich(job_id, build_enrichment(job, employers))

        stage = "index"
        typesense_id = await search.upsert(to_search_document(enriched))
        await api.mark_indexed(job_id, typesense_id)
    except Exception as exc:
        logger.exception("scraped job enrichment failed job_id=%s stage=%s", job_id, stage)
        await api.mark_failed(job_id, reason=str(exc) or exc.__class__.__name__, stage=stage)
        return {"id": job_id, "status": "failed", "failure_stage": stage}

    logger.info(
        "scraped job indexed job_id=%s typesense_id=%s tier=%s",
        job_id,
        typesense_id,
        enriched.get("second_chance_tier"),
    )
    return {"id": job_id, "status": "indexed", "typesense_id": typesense_id}
