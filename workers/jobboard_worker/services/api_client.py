from __future__ import annotations

from typing import Any

import httpx


class ScrapedJobsClient:
    """Machine client for the API's scraped-job pipeline endpoints."""

    def __init__(
        self,
        base_url: str,
        module_id: str,
        api_key: str,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.headers = {
            "X-Module-Id": module_id,
            "X-API-Key": api_key,
        }
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def list_by_status(self, status: str, *, limit: int = 25) -> list[dict[str, Any]]:
        return await self._send("GET", "/scraped-jobs", params={"status": status, "limit": limit})

    async def enrich(self, job_id: str, signals: dict[str, Any]) -> dict[str, Any]:
        return await self._send("POST", f"/scraped-jobs/{job_id}/enrich", json=signals)

    async def mark_indexed(self, job_id: str, typesense_id: str) -> dict[str, Any]:
        return await self._send("POST", f"/scraped-jobs/{job_id}/indexed", json={"typesense_id": typesense_id})

    async def mark_failed(self, job_id: str, *, reason: str, stage: str) -> dict[str, Any]:
        payload = {"status": "failed", "failure_reason": reason, "failure_stage": stage}
        return await self._send("PATCH", f"/scraped-jobs/{job_id}/status", json=payload)

    async def _send(self, method: str, path: str, **kwargs: Any) -> Any:
        if self._client is not None:
            response = await self._client.request(method, f"{self.base_url}{path}", headers=self.headers, **kwargs)
        else:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.request(method, f"{self.base_url}{path}", headers=self.headers, **kwargs)
        response.raise_for_status()
        return response.json()
