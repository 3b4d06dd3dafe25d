from __future__ import annotations

import asyncio
import logging
import random

from opentelemetry import trace

from jobboard_worker.core.config import get_settings
from jobboard_worker.core.telemetry import (
    configure_worker_logging,
    setup_worker_telemetry,
    shutdown_worker_telemetry,
)
from jobboard_worker.jobs.employers import FairChanceEmployers
from jobboard_worker.jobs.enrich import execute_enrichment
from jobboard_worker.services.api_client import ScrapedJobsClient
from jobboard_worker.services.search_client import SearchIndexClient

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


async def run_worker() -> None:
    settings = get_settings()
    configure_worker_logging()
    telemetry_runtime = setup_worker_telemetry(settings)
    api = ScrapedJobsClient(
        base_url=settings.api_base_url,
        module_id=settings.module_id,
        api_key=settings.api_key,
        timeout_seconds=settings.api_timeout_seconds,
    )
    search = SearchIndexClient(
        settings.typesense_url,
        settings.typesense_api_key,
        settings.typesense_collection,
        timeout_seconds=settings.typesense_timeout_seconds,
    )
    search.ensure_configured()
    employers = FairChanceEmployers.from_file(settings.fair_chance_employers_path)

    backoff = settings.poll_interval_seconds
    logger.info("worker starting module_id=%s batch_size=%s", settings.module_id, settings.batch_size)
    try:
        while True:
            try:
                with tracer.start_as_current_span("worker.poll_cycle"):
                    jobs = await api.list_by_status("scraped", limit=settings.batch_size)
                    if not jobs:
                        await asyncio.sleep(settings.poll_interval_seconds)
                        continue

                    for job in jobs:
                        with tracer.start_as_current_span("worker.enrich_record") as span:
                            span.set_attribute("scraped_job.id", job["id"])
                            span.set_attribute("scraped_job.source", job.get("source") or "")
                            result = await execute_enrichment(job, api=api, search=search, employers=employers)
                            span.set_attribute("scraped_job.status", result["status"])

                    backoff = settings.poll_interval_seconds
            except Exception as exc:  # pragma: no cover - keeps the poll loop alive
                jitter = random.uniform(0.0, 0.5)
                sleep_for = min(backoff * (2.0 + jitter), settings.max_backoff_seconds)
                logger.exception("worker iteration failed error=%s retry_in=%.1fs", exc, sleep_for)
                await asyncio.sleep(sleep_for)
                backoff = sleep_for
    finally:
        shutdown_worker_telemetry(telemetry_runtime)


if __name__ == "__main__":
    asyncio.run(run_worker())
