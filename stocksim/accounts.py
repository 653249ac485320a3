"""Account registration, login and the tutorial cash award."""

from __future__ import annotations

import hashlib
import hmac
import secrets
from collections.abc import Callable
from decimal import Decimal

from loguru import logger

from stocksim.activity import SuspiciousActivityLog
from stocksim.core.clock import now_ms
from stocksim.core.events import SuspiciousActivityKind
from stocksim.errors import (
    InvalidCredentialsError,
    RegistrationError,
    UserNotFoundError,
    UsernameTakenError,
)
from stocksim.models import TutorialAnswerResult, TutorialLesson, TutorialStatus, UserAccount
from stocksim.store import LedgerStore
from stocksim.tutorial import TUTORIAL_LESSONS, public_lesson

PBKDF2_SCHEME = "pbkdf2_sha256"


class PasswordHasher:
    """Salted PBKDF2-HMAC-SHA256 password hashes.

    Stored form is ``pbkdf2_sha256$<iterations>$<salt hex>$<hash hex>``. Bare
    64-character hex strings are legacy unsalted SHA-256 hashes; they verify
    but report that a rehash is needed.
    """

    def __init__(self, iterations: int = 200_000) -> None:
        self.iterations = iterations

    def hash(self, password: str) -> str:
        salt = secrets.token_bytes(16)
        digest = self._derive(password, salt, self.iterations)
        return f"{PBKDF2_SCHEME}${self.iterations}${salt.hex()}${digest.hex()}"

    def verify(self, password: str, stored: str) -> tuple[bool, bool]:
        """Return (matches, needs_rehash)."""
        if stored.startswith(f"{PBKDF2_SCHEME}$"):
            try:
                _, iterations_text, salt_hex, digest_hex = stored.split("$")
                iterations = int(iterations_text)
                salt = bytes.fromhex(salt_hex)
            except ValueError:
                logger.error("Malformed password hash encountered")
                return False, False
            candidate = self._derive(password, salt, iterations).hex()
            matches = hmac.compare_digest(candidate, digest_hex)
            return matches, matches and iterations != self.iterations
        legacy = hashlib.sha256(password.encode("utf-8")).hexdigest()
        matches = hmac.compare_digest(legacy, stored)
        return matches, matches

    @staticmethod
    def _derive(password: str, salt: bytes, iterations: int) -> bytes:
        return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)


class AccountService:
    """Creates accounts, checks credentials and drives tutorial progress."""

    def __init__(
        self,
        store: LedgerStore,
        activity: SuspiciousActivityLog,
        *,
        hasher: PasswordHasher | None = None,
        starting_cash: Decimal = Decimal("100000"),
        username_min_length: int = 3,
        username_max_length: int = 20,
        password_min_length: int = 6,
        lessons: tuple[TutorialLesson, ...] = TUTORIAL_LESSONS,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._activity = activity
        self._hasher = hasher or PasswordHasher()
        self._starting_cash = starting_cash
        self._username_min = username_min_length
        self._username_max = username_max_length
        self._password_min = password_min_length
        self._lessons = lessons
        self._clock = clock

    async def register(self, username: str | None, password: str | None) -> UserAccount:
        """Create an account with zero cash and an empty portfolio.

        Raises:
            RegistrationError: If a field is missing or breaks a length rule
            UsernameTakenError: If the username exists (case-insensitive)
        """
        if not username or not password:
            raise RegistrationError("Username and password required")
        if not self._username_min <= len(username) <= self._username_max:
            raise RegistrationError(
                f"Username must be {self._username_min}-{self._username_max} characters"
            )
        if len(password) < self._password_min:
            raise RegistrationError(
                f"Password must be at least {self._password_min} characters"
            )

        password_hash = self._hasher.hash(password)
        async with self._store.mutation():
            if self._store.find_user_by_username(username) is not None:
                raise UsernameTakenError()
            now = self._clock()
            user = UserAccount(
                user_id=secrets.token_hex(16),
                username=username,
                password_hash=password_hash,
                created_at=now,
                last_activity=now,
            )
            self._store.add_user(user)
            self._store.persist_users()
        logger.info("Registered user {} ({})", user.username, user.user_id)
        return user

    async def authenticate(
        self, username: str | None, password: str | None, *, client_id: str | None = None
    ) -> UserAccount:
        """Return the account matching the credentials.

        Failed attempts are recorded as ``FAILED_LOGIN`` against ``client_id``
        (or the submitted username when no client id is known).

        Raises:
            AccountError: If credentials are missing or wrong
        """
        if not username or not password:
            raise RegistrationError("Username and password required")

        identifier = client_id or username
        user = self._store.find_user_by_username(username)
        if user is None:
            self._activity.record(
                identifier, SuspiciousActivityKind.FAILED_LOGIN, {"username": username}
            )
            raise InvalidCredentialsError()

        matches, needs_rehash = self._hasher.verify(password, user.password_hash)
        if not matches:
            self._activity.record(
                identifier, SuspiciousActivityKind.FAILED_LOGIN, {"username": username}
            )
            raise InvalidCredentialsError()

        new_hash = self._hasher.hash(password) if needs_rehash else None
        async with self._store.mutation():
            if new_hash is not None:
                user.password_hash = new_hash
                logger.info("Upgraded password hash for {}", user.user_id)
            user.last_activity = self._clock()
            self._store.persist_users()
        return user

    def tutorial_status(self, user_id: str) -> TutorialStatus:
        user = self._require_user(user_id)
        total = len(self._lessons)
        if user.tutorial_step >= total:
            return TutorialStatus(
                completed=True,
                total=total,
                tutorial_completed=user.tutorial_completed,
                ui_tutorial_completed=user.ui_tutorial_completed,
            )
        return TutorialStatus(
            completed=False,
            step=user.tutorial_step,
            total=total,
            lesson=public_lesson(self._lessons[user.tutorial_step]),
            tutorial_completed=user.tutorial_completed,
            ui_tutorial_completed=user.ui_tutorial_completed,
        )

    async def answer_tutorial(self, user_id: str, answer_index: int) -> TutorialAnswerResult:
        """Check an answer for the current lesson; award cash after the last one.

        The award is granted at most once per account.
        """
        async with self._store.mutation():
            user = self._require_user(user_id)
            step = user.tutorial_step
            if step >= len(self._lessons):
                return TutorialAnswerResult(correct=True, completed=True, cash=user.cash)

            if answer_index != self._lessons[step].correct_answer:
                return TutorialAnswerResult(
                    correct=False, message="Not quite right. Please try again!"
                )

            user.tutorial_step = step + 1
            if user.tutorial_step < len(self._lessons):
                self._store.persist_users()
                return TutorialAnswerResult(
                    correct=True,
                    next_step=user.tutorial_step,
                    message="Correct! Moving to the next lesson.",
                )

            awarded = self._award_locked(user)
            self._store.persist_users()

        message = (
            f"Congratulations! You've completed the tutorial and been awarded "
            f"${self._starting_cash:,} to start trading!"
            if awarded
            else "Tutorial completed."
        )
        return TutorialAnswerResult(correct=True, completed=True, message=message, cash=user.cash)

    async def complete_ui_tutorial(self, user_id: str) -> None:
        async with self._store.mutation():
            user = self._require_user(user_id)
            user.ui_tutorial_completed = True
            self._store.persist_users()

    def _award_locked(self, user: UserAccount) -> bool:
        if user.tutorial_completed:
            return False
        user.tutorial_completed = True
        user.cash = self._starting_cash
        logger.info("Awarded starting cash {} to {}", self._starting_cash, user.user_id)
        return True

    def _require_user(self, user_id: str) -> UserAccount:
        user = self._store.get_user(user_id)
        if user is None:
            raise UserNotFoundError()
        return user
