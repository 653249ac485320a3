"""In-memory ledger of users and transactions with whole-file persistence."""

from __future__ import annotations

import asyncio
import copy
import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any, Protocol

from loguru import logger

from stocksim.core.constants import TRANSACTIONS_COLLECTION, USERS_COLLECTION
from stocksim.core.telemetry import TelemetryReporter
from stocksim.models import TransactionRecord, UserAccount


class LedgerBackend(Protocol):
    """Durable key-value shaped storage for the ledger collections."""

    def load_all(self, collection: str) -> list[dict[str, Any]]:
        """Return every stored record of ``collection`` (empty when absent)."""

    def save_all(self, collection: str, records: list[dict[str, Any]]) -> None:
        """Replace the stored contents of ``collection``; raise on failure."""


class JsonFileBackend:
    """Store each collection as one JSON file, rewritten in full on save.

    Files are overwritten in place; a crash mid-write can leave a truncated
    file behind.
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = Path(data_dir)

    def path_for(self, collection: str) -> Path:
        return self._data_dir / f"{collection}.json"

    def load_all(self, collection: str) -> list[dict[str, Any]]:
        path = self.path_for(collection)
        if not path.exists():
            return []
        decoded = json.loads(path.read_text(encoding="utf-8"))
        # users.json may be an object keyed by user id
        if isinstance(decoded, dict):
            return [dict(record) for record in decoded.values()]
        return [dict(record) for record in decoded]

    def save_all(self, collection: str, records: list[dict[str, Any]]) -> None:
        path = self.path_for(collection)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(records, indent=2), encoding="utf-8")


class InMemoryBackend:
    """Backend keeping serialized collections in a dict (tests, ephemeral runs)."""

    def __init__(self, initial: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.collections: dict[str, list[dict[str, Any]]] = copy.deepcopy(initial or {})
        self.save_count = 0

    def load_all(self, collection: str) -> list[dict[str, Any]]:
        return copy.deepcopy(self.collections.get(collection, []))

    def save_all(self, collection: str, records: list[dict[str, Any]]) -> None:
        self.collections[collection] = copy.deepcopy(records)
        self.save_count += 1


class LedgerStore:
    """Holds the users map and the append-only transaction list.

    All mutation goes through ``mutation()``, a single-writer section; callers
    must not await anything else while holding it.
    """

    def __init__(
        self,
        backend: LedgerBackend,
        *,
        telemetry: TelemetryReporter | None = None,
    ) -> None:
        self._backend = backend
        self._telemetry = telemetry
        self._lock = asyncio.Lock()
        self.users: dict[str, UserAccount] = {}
        self.transactions: list[TransactionRecord] = []
        self.unsaved_collections: set[str] = set()

    def mutation(self) -> asyncio.Lock:
        """Return the single-writer lock guarding every ledger mutation."""
        return self._lock

    def load(self) -> None:
        """Replace in-memory state with the backend contents.

        Missing collections load as empty; unreadable ones propagate.
        """
        users = [
            UserAccount.model_validate(record)
            for record in self._backend.load_all(USERS_COLLECTION)
        ]
        transactions = [
            TransactionRecord.model_validate(record)
            for record in self._backend.load_all(TRANSACTIONS_COLLECTION)
        ]
        self.users = {user.user_id: user for user in users}
        self.transactions = transactions
        logger.info(
            "Loaded ledger: {} users, {} transactions", len(self.users), len(self.transactions)
        )

    # Reads

    def get_user(self, user_id: str) -> UserAccount | None:
        return self.users.get(user_id)

    def find_user_by_username(self, username: str) -> UserAccount | None:
        """Case-insensitive username lookup."""
        normalized = username.lower()
        for user in self.users.values():
            if user.username.lower() == normalized:
                return user
        return None

    def iter_users(self) -> Iterator[UserAccount]:
        return iter(list(self.users.values()))

    def transactions_for(self, user_id: str) -> list[TransactionRecord]:
        return [record for record in self.transactions if record.user_id == user_id]

    def recent_transaction_count(self, user_id: str, now_ms: int, window_ms: int) -> int:
        """Count the user's transactions settled less than ``window_ms`` ago.

        Entries stamped after ``now_ms`` (the ledger clamps timestamps after a
        backwards clock step) fall outside the window.
        """
        return sum(
            1
            for record in self.transactions
            if record.user_id == user_id and 0 <= now_ms - record.timestamp < window_ms
        )

    def last_timestamp(self) -> int:
        return self.transactions[-1].timestamp if self.transactions else 0

    # Writes (callers hold mutation())

    def add_user(self, user: UserAccount) -> None:
        self.users[user.user_id] = user

    def append_transaction(self, record: TransactionRecord) -> None:
        self.transactions.append(record)

    def persist_users(self) -> bool:
        records = [user.model_dump(mode="json") for user in self.users.values()]
        return self._save(USERS_COLLECTION, records)

    def persist_transactions(self) -> bool:
        records = [record.model_dump(mode="json") for record in self.transactions]
        return self._save(TRANSACTIONS_COLLECTION, records)

    def _save(self, collection: str, records: list[dict[str, Any]]) -> bool:
        try:
            self._backend.save_all(collection, records)
        except Exception as exc:
            # The in-memory mutation stands; disk now lags behind memory.
            self.unsaved_collections.add(collection)
            logger.error("Failed to persist {} ({} records): {}", collection, len(records), exc)
            if self._telemetry is not None:
                self._telemetry.error(
                    "Ledger persistence failed; in-memory state diverges from disk",
                    context={"collection": collection, "records": len(records), "error": str(exc)},
                )
            return False
        self.unsaved_collections.discard(collection)
        return True
