from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

import httpx

from jobboard.core.config import get_settings

logger = logging.getLogger(__name__)


class PipelineConfigurationError(RuntimeError):
    """Raised when the scrape pipeline URL or shared secret is missing."""


class PipelineValidationError(ValueError):
    """Raised when a request to the pipeline is malformed before it is sent."""


class PipelineRequestError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class PipelineAdminClient:
    """Calls the scrape pipeline's admin endpoints with the shared-secret header."""

    def __init__(
        self,
        base_url: str | None,
        secret: str | None,
        *,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.secret = secret
        self.timeout_seconds = timeout_seconds
        self._client = client

    def ensure_configured(self) -> None:
        if not self.base_url or not self.secret:
            raise PipelineConfigurationError("SCRAPE_PIPELINE_URL or SCRAPE_PIPELINE_SECRET not configured")

    async def get_cache_stats(self) -> Any:
        return await self._call("GET", "/api/admin/cache/stats", action="get cache stats")

    async def clear_cache(
        self,
        *,
        clear_all: bool | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> Any:
        self.ensure_configured()
        if clear_all:
            body: dict[str, Any] = {"clearAll": True}
        elif start_date and end_date:
            body = {"startDate": start_date, "endDate": end_date}
        else:
            raise PipelineValidationError("Specify clearAll or startDate/endDate")
        return await self._call("POST", "/api/admin/cache/clear", action="clear cache", json=body)

    async def get_fair_chance_stats(self) -> Any:
        return await self._call("GET", "/api/admin/fair-chance/stats", action="get fair chance stats")

    async def nuke_all(self) -> Any:
        return await self._call("POST", "/api/admin/nuke-all", action="nuke pipeline data")

    async def delete_search_documents(self, *, typesense_ids: list[str], external_ids: list[str]) -> Any:
        logger.info("pipeline cleanup typesense_ids=%s", len(typesense_ids))
        return await self._call(
            "POST",
            "/api/admin/typesense/delete",
            action="delete from Typesense",
            json={"typesenseIds": typesense_ids, "externalIds": external_ids},
        )

    async def _call(self, method: str, path: str, *, action: str, json: dict[str, Any] | None = None) -> Any:
        self.ensure_configured()
        headers = {"X-Pipeline-Secret": self.secret or ""}
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                response = await self._client.request(method, url, headers=headers, json=json)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.request(method, url, headers=headers, json=json)
        except httpx.HTTPError as exc:
            raise PipelineRequestError(f"Failed to {action}: {exc}") from exc

        if not response.is_success:
            logger.warning("pipeline request failed action=%s status=%s", action, response.status_code)
            raise PipelineRequestError(
                f"Failed to {action}: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.content:
            return {}
        return response.json()


@lru_cache
def get_pipeline_client() -> PipelineAdminClient:
    settings = get_settings()
    return PipelineAdminClient(
        settings.scrape_pipeline_url,
        settings.scrape_pipeline_secret,
        timeout_seconds=settings.scrape_pipeline_timeout_seconds,
    )
