"""Anti-abuse validation of proposed trades."""

from __future__ import annotations

from dataclasses import dataclass

from stocksim.activity import SuspiciousActivityLog
from stocksim.core.events import SuspiciousActivityKind
from stocksim.errors import (
    InvalidPriceError,
    InvalidQuantityError,
    RapidTradingError,
    UserNotFoundError,
    error_for_reason,
)
from stocksim.models import coerce_price, coerce_quantity
from stocksim.store import LedgerStore


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of a trade validation."""

    valid: bool
    reason: str | None = None

    def raise_for_reason(self) -> None:
        """Raise the typed error for a failed validation; no-op when valid."""
        if not self.valid:
            raise error_for_reason(self.reason or "Trade rejected")


class TradeValidator:
    """Checks a proposed trade against quantity, price and velocity rules.

    The checks are advisory anti-abuse, not a security boundary: price is
    re-fetched on every call, so replayed requests can still differ.
    """

    def __init__(
        self,
        store: LedgerStore,
        activity: SuspiciousActivityLog,
        *,
        rapid_trade_limit: int = 5,
        rapid_trade_window_ms: int = 1000,
    ) -> None:
        self._store = store
        self._activity = activity
        self.rapid_trade_limit = rapid_trade_limit
        self.rapid_trade_window_ms = rapid_trade_window_ms

    def validate(
        self, user_id: str, symbol: str, quantity: object, price: object, *, now_ms: int
    ) -> ValidationResult:
        """Validate a trade.

        Args:
            user_id: Authenticated user id
            symbol: Trading symbol
            quantity: Requested share count (must be a positive integer)
            price: Execution price candidate (must be a positive number)
            now_ms: Current time in epoch milliseconds

        Returns:
            ValidationResult with the failure reason when invalid
        """
        if self._store.get_user(user_id) is None:
            return ValidationResult(False, UserNotFoundError.default_reason)

        if coerce_quantity(quantity) is None:
            self._activity.record(
                user_id,
                SuspiciousActivityKind.INVALID_QUANTITY,
                {"symbol": symbol, "quantity": quantity},
            )
            return ValidationResult(False, InvalidQuantityError.default_reason)

        if coerce_price(price) is None:
            self._activity.record(
                user_id,
                SuspiciousActivityKind.INVALID_PRICE,
                {"symbol": symbol, "price": price},
            )
            return ValidationResult(False, InvalidPriceError.default_reason)

        recent = self._store.recent_transaction_count(
            user_id, now_ms, self.rapid_trade_window_ms
        )
        if recent >= self.rapid_trade_limit:
            self._activity.record(
                user_id, SuspiciousActivityKind.RAPID_TRADING, {"count": recent}
            )
            return ValidationResult(False, RapidTradingError.default_reason)

        return ValidationResult(True)
