import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any

import httpx
from fastapi import Depends, Header, HTTPException, status

from jobboard.core.auth import Principal, PrincipalType
from jobboard.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

ROLE_SCOPES: dict[str, set[str]] = {
    "user": {"profile:write", "applications:write", "search:read"},
    "admin": {"profile:write", "applications:write", "search:read", "admin:read", "admin:write"},
}


@dataclass(slots=True)
class MachineCredentialRecord:
    module_id: str
    scopes: list[str]
    key_hash: str


def parse_machine_credentials(raw: str | None) -> dict[str, MachineCredentialRecord]:
    """Parse ``MACHINE_CREDENTIALS_JSON``.

    Shape: ``{"<module-id>": {"key_sha256": "<hex>", "scopes": ["scraped_jobs:write", ...]}}``.
    """
    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("MACHINE_CREDENTIALS_JSON must be valid JSON") from exc
    if not isinstance(payload, dict):
        raise ValueError("MACHINE_CREDENTIALS_JSON must be an object keyed by module id")

    records: dict[str, MachineCredentialRecord] = {}
    for module_id, entry in payload.items():
        if not isinstance(entry, dict):
            continue
        key_hash = entry.get("key_sha256")
        scopes = entry.get("scopes")
        if not isinstance(key_hash, str) or not key_hash:
            continue
        records[str(module_id)] = MachineCredentialRecord(
            module_id=str(module_id),
            scopes=[scope for scope in scopes or [] if isinstance(scope, str)],
            key_hash=key_hash.lower(),
        )
    return records


async def get_machine_principal(
    settings: Settings = Depends(get_settings),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    x_module_id: str | None = Header(default=None, alias="X-Module-Id"),
) -> Principal:
    if not x_api_key or not x_module_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="machine auth requires X-API-Key and X-Module-Id",
        )

    try:
        credentials = parse_machine_credentials(settings.machine_credentials_json)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    matched = credentials.get(x_module_id)
    key_hash = hashlib.sha256(x_api_key.encode("utf-8")).hexdigest()
    if matched is None or not hmac.compare_digest(matched.key_hash, key_hash):
        logger.warning("machine auth rejected module_id=%s", x_module_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid module credentials")

    return Principal(
        principal_type=PrincipalType.MACHINE,
        subject=matched.module_id,
        scopes=set(matched.scopes),
        actor_id=matched.module_id,
    )


async def get_human_principal(
    settings: Settings = Depends(get_settings),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Principal:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    token = authorization.split(" ", maxsplit=1)[1].strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    if not settings.auth_userinfo_url:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="identity provider is not configured",
        )

    user = await _fetch_identity_user(
        userinfo_url=settings.auth_userinfo_url,
        token=token,
        timeout_seconds=settings.auth_timeout_seconds,
    )
    user_id = user.get("id") or user.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")

    email = user.get("email")
    normalized_email = email.strip().lower() if isinstance(email, str) and email.strip() else None
    role = _resolve_human_role(user, email=normalized_email, admin_emails=settings.admin_email_set)

    return Principal(
        principal_type=PrincipalType.HUMAN,
        subject=user_id,
        role=role,
        scopes=set(ROLE_SCOPES.get(role, ROLE_SCOPES["user"])),
        actor_id=user_id,
        email=normalized_email,
    )


async def _fetch_identity_user(
    *,
    userinfo_url: str,
    token: str,
    timeout_seconds: float,
) -> dict[str, Any]:
    headers = {"Authorization": f"Bearer {token}"}

    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            response = await client.get(userinfo_url, headers=headers)
    except httpx.HTTPError as exc:  # pragma: no cover - network dependent
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="identity verification unavailable",
        ) from exc

    if response.status_code in {401, 403}:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")
    if response.status_code != 200:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="identity verification failed",
        )

    return response.json()


def _resolve_human_role(user: dict[str, Any], *, email: str | None, admin_emails: frozenset[str]) -> str:
    app_metadata = user.get("app_metadata")
    if isinstance(app_metadata, dict):
        role = app_metadata.get("role")
        if isinstance(role, str) and role in ROLE_SCOPES:
            return role

    # ADMIN_EMAILS bootstraps admins until a role claim is stored on the account.
    if email and email in admin_emails:
        return "admin"

    return "user"


def require_admin(principal: Principal) -> None:
    try:
        principal.require_scopes({"admin:write"})
    except PermissionError as exc:
        logger.warning(
            "admin access denied subject=%s email=%s role=%s",
            principal.subject,
            principal.email,
            principal.role,
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required") from exc


async def get_admin_principal(principal: Principal = Depends(get_human_principal)) -> Principal:
    require_admin(principal)
    return principal
