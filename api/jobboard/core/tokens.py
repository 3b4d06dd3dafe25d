"""Signed magic-link tokens for employer flows.

A token is ``<payload>.<signature>``, both base64url without padding. The
payload is JSON ``{"submission_id", "sender_id", "exp"}`` with ``exp`` in
epoch milliseconds; the signature is HMAC-SHA256 over the encoded payload
keyed by ``TOKEN_SIGNING_SECRET``.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from datetime import timedelta
from urllib.parse import urlencode

DEFAULT_TOKEN_TTL = timedelta(days=7)
MIN_SECRET_LENGTH = 32


class TokenError(Exception):
    """Base magic-link token error."""


class TokenConfigurationError(TokenError):
    """Raised when the signing secret is absent."""


class InvalidTokenError(TokenError):
    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class ExpiredTokenError(TokenError):
    def __init__(self, message: str = "Token expired") -> None:
        super().__init__(message)


@dataclass(slots=True, frozen=True)
class TokenPayload:
    submission_id: str
    sender_id: str
    exp: int

    def is_expired(self, now_ms: int | None = None) -> bool:
        current = now_ms if now_ms is not None else _now_ms()
        return self.exp < current


def create_token(
    submission_id: str,
    sender_id: str,
    *,
    secret: str | None,
    ttl: timedelta = DEFAULT_TOKEN_TTL,
    now_ms: int | None = None,
) -> str:
    key = _require_secret(secret)
    issued_at = now_ms if now_ms is not None else _now_ms()
    payload = {
        "submission_id": submission_id,
        "sender_id": sender_id,
        "exp": issued_at + int(ttl.total_seconds() * 1000),
    }
    encoded = _b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
    return f"{encoded}.{_sign(key, encoded)}"


def parse_token(token: str | None, *, secret: str | None) -> TokenPayload | None:
    """Decode and authenticate a token; expiry is left to the caller."""
    key = _require_secret(secret)
    if not token or not isinstance(token, str) or not token.isascii():
        return None

    encoded, separator, signature = token.partition(".")
    if not separator or not encoded or not signature:
        return None
    if not hmac.compare_digest(_sign(key, encoded), signature):
        return None

    try:
        data = json.loads(_b64decode(encoded))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None

    submission_id = data.get("submission_id")
    sender_id = data.get("sender_id")
    exp = data.get("exp")
    if not isinstance(submission_id, str) or not submission_id:
        return None
    if not isinstance(sender_id, str) or not sender_id:
        return None
    if isinstance(exp, bool) or not isinstance(exp, (int, float)):
        return None

    return TokenPayload(submission_id=submission_id, sender_id=sender_id, exp=int(exp))


def verify_token(token: str | None, *, secret: str | None, now_ms: int | None = None) -> TokenPayload:
    payload = parse_token(token, secret=secret)
    if payload is None:
        raise InvalidTokenError()
    if payload.is_expired(now_ms):
        raise ExpiredTokenError()
    return payload


def candidates_link(app_base_url: str, token: str) -> str:
    return f"{app_base_url.rstrip('/')}/employer/candidates?{urlencode({'token': token})}"


def setup_link(app_base_url: str, token: str) -> str:
    return f"{app_base_url.rstrip('/')}/employer/setup?{urlencode({'token': token})}"


def _require_secret(secret: str | None) -> bytes:
    if not secret:
        raise TokenConfigurationError("TOKEN_SIGNING_SECRET is required")
    if len(secret) < MIN_SECRET_LENGTH:
        raise TokenConfigurationError(f"TOKEN_SIGNING_SECRET must be at least {MIN_SECRET_LENGTH} characters")
    return secret.encode("utf-8")


def _sign(key: bytes, encoded_payload: str) -> str:
    digest = hmac.new(key, encoded_payload.encode("ascii"), hashlib.sha256).digest()
    return _b64encode(digest)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(encoded: str) -> str:
    padding = "=" * (-len(encoded) % 4)
    return base64.urlsafe_b64decode((encoded + padding).encode("ascii")).decode("utf-8")


def _now_ms() -> int:
    return int(time.time() * 1000)
