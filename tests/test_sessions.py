"""Tests for signed session tokens."""

from __future__ import annotations

import pytest

from stocksim.errors import SessionExpiredError, UnauthorizedError
from stocksim.sessions import SessionManager


class ManualClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_issue_and_resolve() -> None:
    sessions = SessionManager("secret", ttl_seconds=60)

    token = sessions.issue("user-123")

    assert sessions.resolve(token) == "user-123"


@pytest.mark.parametrize("token", [None, "", "garbage", "abc.", ".sig"])
def test_missing_or_malformed_token_is_unauthorized(token: str | None) -> None:
    sessions = SessionManager("secret")

    with pytest.raises(UnauthorizedError, match="Unauthorized"):
        sessions.resolve(token)


def test_token_signed_with_other_secret_is_rejected() -> None:
    token = SessionManager("other").issue("user-123")

    with pytest.raises(UnauthorizedError):
        SessionManager("secret").resolve(token)


def test_tampered_payload_is_rejected() -> None:
    sessions = SessionManager("secret")
    body, _, signature = sessions.issue("user-123").partition(".")
    forged_body = SessionManager("secret").issue("admin").partition(".")[0]

    with pytest.raises(UnauthorizedError):
        sessions.resolve(f"{forged_body}.{signature}")
    assert sessions.resolve(f"{body}.{signature}") == "user-123"


def test_expired_token() -> None:
    clock = ManualClock()
    sessions = SessionManager("secret", ttl_seconds=10, clock=clock)
    token = sessions.issue("user-123")

    clock.now += 10

    with pytest.raises(SessionExpiredError, match="Session expired or invalid"):
        sessions.resolve(token)


def test_empty_secret_is_refused() -> None:
    with pytest.raises(ValueError):
        SessionManager("")
