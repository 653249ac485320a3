"""Common constants shared across the simulator."""

from __future__ import annotations

from decimal import Decimal

USERS_COLLECTION = "users"
TRANSACTIONS_COLLECTION = "transactions"
LEDGER_COLLECTIONS = (USERS_COLLECTION, TRANSACTIONS_COLLECTION)

DEFAULT_SERIES_RANGE = "1d"
DEFAULT_SERIES_INTERVAL = "5m"
QUOTE_HISTORY_PERIOD = "1d"
QUOTE_HISTORY_INTERVAL = "1m"

ZERO = Decimal("0")
HUNDRED = Decimal("100")
