from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class SearchConfigurationError(RuntimeError):
    pass


class SearchIndexClient:
    """Writes job documents into the search engine's jobs collection."""

    def __init__(
        self,
        base_url: str | None,
        api_key: str | None,
        collection: str = "jobs",
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url else None
        self.api_key = api_key
        self.collection = collection
        self.timeout_seconds = timeout_seconds
        self._client = client

    def ensure_configured(self) -> None:
        if not self.base_url or not self.api_key:
            raise SearchConfigurationError(
                "JOBBOARD_WORKER_TYPESENSE_URL or JOBBOARD_WORKER_TYPESENSE_API_KEY not configured"
            )

    async def upsert(self, document: dict[str, Any]) -> str:
        self.ensure_configured()
        url = f"{self.base_url}/collections/{self.collection}/documents"
        headers = {"X-TYPESENSE-API-KEY": self.api_key}
        if self._client is not None:
            response = await self._client.post(url, params={"action": "upsert"}, json=document, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.post(url, params={"action": "upsert"}, json=document, headers=headers)
        response.raise_for_status()
        logger.debug("search document upserted id=%s collection=%s", document["id"], self.collection)
        return str(response.json().get("id") or document["id"])
