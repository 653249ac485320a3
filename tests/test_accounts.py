"""Tests for registration, login, password hashing and the tutorial award."""

from __future__ import annotations

import hashlib
from decimal import Decimal

import pytest

from stocksim.accounts import AccountService, PasswordHasher
from stocksim.activity import SuspiciousActivityLog
from stocksim.core.events import SuspiciousActivityKind
from stocksim.errors import (
    InvalidCredentialsError,
    RegistrationError,
    UserNotFoundError,
    UsernameTakenError,
)
from stocksim.store import LedgerStore
from stocksim.tutorial import TUTORIAL_LESSONS

ANSWERS = [lesson.correct_answer for lesson in TUTORIAL_LESSONS]


@pytest.fixture()
def accounts(store: LedgerStore, activity: SuspiciousActivityLog, clock) -> AccountService:
    return AccountService(store, activity, hasher=PasswordHasher(iterations=1_000), clock=clock)


def test_password_hasher_round_trip() -> None:
    hasher = PasswordHasher(iterations=1_000)
    stored = hasher.hash("hunter22")

    assert stored.startswith("pbkdf2_sha256$1000$")
    assert hasher.verify("hunter22", stored) == (True, False)
    assert hasher.verify("wrong", stored) == (False, False)
    assert hasher.hash("hunter22") != stored


def test_password_hasher_flags_legacy_and_stale_hashes() -> None:
    legacy = hashlib.sha256(b"hunter22").hexdigest()
    hasher = PasswordHasher(iterations=1_000)

    assert hasher.verify("hunter22", legacy) == (True, True)
    assert PasswordHasher(iterations=2_000).verify("hunter22", hasher.hash("hunter22")) == (
        True,
        True,
    )
    assert hasher.verify("hunter22", "pbkdf2_sha256$broken") == (False, False)


@pytest.mark.asyncio
async def test_register_creates_unfunded_account(
    accounts: AccountService, store: LedgerStore
) -> None:
    user = await accounts.register("alice", "secret1")

    assert user.cash == Decimal("0")
    assert user.portfolio == {}
    assert user.tutorial_step == 0
    assert user.tutorial_completed is False
    assert store.get_user(user.user_id) is user
    assert user.password_hash != "secret1"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("username", "password", "reason"),
    [
        ("", "secret1", "Username and password required"),
        ("alice", None, "Username and password required"),
        ("al", "secret1", "Username must be 3-20 characters"),
        ("a" * 21, "secret1", "Username must be 3-20 characters"),
        ("alice", "short", "Password must be at least 6 characters"),
    ],
)
async def test_register_validation(
    accounts: AccountService, username: str, password: str | None, reason: str
) -> None:
    with pytest.raises(RegistrationError) as exc_info:
        await accounts.register(username, password)

    assert exc_info.value.reason == reason


@pytest.mark.asyncio
async def test_register_rejects_duplicate_username_case_insensitively(
    accounts: AccountService,
) -> None:
    await accounts.register("Alice", "secret1")

    with pytest.raises(UsernameTakenError, match="Username already exists"):
        await accounts.register("alice", "secret2")


@pytest.mark.asyncio
async def test_authenticate_success_and_failure(
    accounts: AccountService, activity: SuspiciousActivityLog, clock
) -> None:
    user = await accounts.register("alice", "secret1")
    clock.advance(5_000)

    assert (await accounts.authenticate("ALICE", "secret1")).user_id == user.user_id
    assert user.last_activity == clock.now

    with pytest.raises(InvalidCredentialsError, match="Invalid credentials"):
        await accounts.authenticate("alice", "wrong-pass", client_id="10.0.0.9")
    with pytest.raises(InvalidCredentialsError):
        await accounts.authenticate("nobody", "secret1")

    failures = activity.events(kind=SuspiciousActivityKind.FAILED_LOGIN)
    assert [event.identifier for event in failures] == ["10.0.0.9", "nobody"]


@pytest.mark.asyncio
async def test_authenticate_upgrades_legacy_hash(
    accounts: AccountService, store: LedgerStore, make_user
) -> None:
    legacy = make_user("old", username="oldtimer")
    legacy.password_hash = hashlib.sha256(b"secret1").hexdigest()
    store.add_user(legacy)

    await accounts.authenticate("oldtimer", "secret1")

    assert legacy.password_hash.startswith("pbkdf2_sha256$")
    await accounts.authenticate("oldtimer", "secret1")


@pytest.mark.asyncio
async def test_tutorial_awards_starting_cash_once(accounts: AccountService) -> None:
    user = await accounts.register("alice", "secret1")

    status = accounts.tutorial_status(user.user_id)
    assert status.step == 0
    assert "correct_answer" not in status.lesson

    wrong = await accounts.answer_tutorial(user.user_id, (ANSWERS[0] + 1) % 4)
    assert wrong.correct is False
    assert user.tutorial_step == 0

    for answer in ANSWERS[:-1]:
        result = await accounts.answer_tutorial(user.user_id, answer)
        assert result.correct and not result.completed
        assert user.cash == Decimal("0")

    final = await accounts.answer_tutorial(user.user_id, ANSWERS[-1])
    assert final.completed
    assert final.cash == Decimal("100000")
    assert user.tutorial_completed

    again = await accounts.answer_tutorial(user.user_id, ANSWERS[-1])
    assert again.completed
    assert user.cash == Decimal("100000")
    assert accounts.tutorial_status(user.user_id).completed


@pytest.mark.asyncio
async def test_award_is_not_repeated_after_spending(
    accounts: AccountService,
) -> None:
    user = await accounts.register("alice", "secret1")
    for answer in ANSWERS:
        await accounts.answer_tutorial(user.user_id, answer)

    user.cash = Decimal("12.50")
    user.tutorial_step = 0
    for answer in ANSWERS:
        await accounts.answer_tutorial(user.user_id, answer)

    assert user.cash == Decimal("12.50")


@pytest.mark.asyncio
async def test_complete_ui_tutorial(accounts: AccountService) -> None:
    user = await accounts.register("alice", "secret1")

    await accounts.complete_ui_tutorial(user.user_id)

    assert user.ui_tutorial_completed
    with pytest.raises(UserNotFoundError):
        await accounts.complete_ui_tutorial("ghost")
