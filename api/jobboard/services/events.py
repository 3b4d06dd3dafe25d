from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

import httpx

from jobboard.core.config import get_settings

logger = logging.getLogger(__name__)

JOB_SUBMITTED = "job/submitted"
APPROVAL_CLICKED = "slack/approval.clicked"
APPLICATION_SUBMITTED = "application/submitted"
EMPLOYER_APPROVED = "employer/approved"
EMPLOYER_ACCOUNT_CREATED = "employer/account-created"


class WorkflowEventError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class WorkflowEventClient:
    """Posts ``{name, data}`` events to the workflow runtime's webhook."""

    def __init__(
        self,
        webhook_url: str | None,
        *,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def send(self, name: str, data: dict[str, Any], *, event_id: str | None = None) -> bool:
        """Send one event. A stable ``event_id`` lets the runtime drop redelivered copies."""
        if not self.webhook_url:
            logger.warning("workflow event skipped event=%s reason=INNGEST_WEBHOOK_URL not configured", name)
            return False

        payload: dict[str, Any] = {"name": name, "data": data}
        if event_id is not None:
            payload["id"] = event_id
        try:
            if self._client is not None:
                response = await self._client.post(self.webhook_url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                    response = await client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as exc:
            raise WorkflowEventError(f"Workflow webhook unreachable: {exc}") from exc

        if not response.is_success:
            raise WorkflowEventError(
                f"Workflow webhook failed: {response.status_code} {response.text}",
                status_code=response.status_code,
            )
        logger.info("workflow event sent event=%s event_id=%s", name, event_id)
        return True


@lru_cache
def get_event_client() -> WorkflowEventClient:
    return WorkflowEventClient(get_settings().inngest_webhook_url)
