from __future__ import annotations

from datetime import timedelta

import pytest

from jobboard.core.tokens import (
    ExpiredTokenError,
    InvalidTokenError,
    TokenConfigurationError,
    candidates_link,
    create_token,
    parse_token,
    setup_link,
    verify_token,
)

SECRET = "unit-test-secret-with-enough-entropy-123"
NOW_MS = 1_700_000_000_000


def test_create_then_parse_returns_ids_and_seven_day_expiry() -> None:
    token = create_token("sub-1", "sender-1", secret=SECRET, now_ms=NOW_MS)

    payload = parse_token(token, secret=SECRET)

    assert payload is not None
    assert payload.submission_id == "sub-1"
    assert payload.sender_id == "sender-1"
    assert payload.exp == NOW_MS + 7 * 24 * 60 * 60 * 1000


def test_token_is_url_safe() -> None:
    token = create_token("sub-1", "sender-1", secret=SECRET, now_ms=NOW_MS)
    assert "=" not in token
    assert "+" not in token
    assert "/" not in token


@pytest.mark.parametrize("token", ["", "not-a-token", "abc.def", "!!!.???", "é.x"])
def test_parse_rejects_malformed_input(token: str) -> None:
    assert parse_token(token, secret=SECRET) is None


def test_parse_rejects_truncated_token() -> None:
    token = create_token("sub-1", "sender-1", secret=SECRET, now_ms=NOW_MS)
    assert parse_token(token[:-4], secret=SECRET) is None


def test_parse_rejects_token_signed_with_another_secret() -> None:
    token = create_token("sub-1", "sender-1", secret="another-secret-that-is-long-enough-00", now_ms=NOW_MS)
    assert parse_token(token, secret=SECRET) is None


def test_parse_does_not_check_expiry() -> None:
    token = create_token("sub-1", "sender-1", secret=SECRET, ttl=timedelta(seconds=-1), now_ms=NOW_MS)
    assert parse_token(token, secret=SECRET) is not None


def test_verify_raises_expired_after_ttl() -> None:
    token = create_token("sub-1", "sender-1", secret=SECRET, ttl=timedelta(minutes=5), now_ms=NOW_MS)

    assert verify_token(token, secret=SECRET, now_ms=NOW_MS + 60_000).submission_id == "sub-1"
    with pytest.raises(ExpiredTokenError, match="Token expired"):
        verify_token(token, secret=SECRET, now_ms=NOW_MS + 10 * 60_000)


def test_verify_raises_invalid_for_garbage() -> None:
    with pytest.raises(InvalidTokenError, match="Invalid token"):
        verify_token("garbage", secret=SECRET)


def test_missing_secret_is_a_configuration_error() -> None:
    with pytest.raises(TokenConfigurationError):
        create_token("sub-1", "sender-1", secret=None)
    with pytest.raises(TokenConfigurationError):
        parse_token("abc.def", secret="")


def test_short_secret_is_a_configuration_error() -> None:
    with pytest.raises(TokenConfigurationError, match="at least 32 characters"):
        create_token("sub-1", "sender-1", secret="too-short")
    with pytest.raises(TokenConfigurationError):
        verify_token("abc.def", secret="too-short")


def test_links_embed_token_under_employer_paths() -> None:
    assert candidates_link("https://jobs.example.test/", "tok") == "https://jobs.example.test/employer/candidates?token=tok"
    assert setup_link("https://jobs.example.test", "tok") == "https://jobs.example.test/employer/setup?token=tok"
