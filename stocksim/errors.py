"""Typed failures raised by the simulator's boundary operations.

Every error carries a short, stable ``reason`` that is safe to show to a
client; ``str(error)`` returns the same text.
"""

from __future__ import annotations


class SimulatorError(Exception):
    """Base error for simulator failures."""

    default_reason = "Simulator error"

    def __init__(self, reason: str | None = None) -> None:
        self.reason = reason or self.default_reason
        super().__init__(self.reason)


class TradeRejectedError(SimulatorError):
    """Client-facing validation failure; no ledger mutation occurred."""

    default_reason = "Trade rejected"


class UserNotFoundError(TradeRejectedError):
    default_reason = "User not found"


class InvalidQuantityError(TradeRejectedError):
    default_reason = "Invalid quantity"


class InvalidPriceError(TradeRejectedError):
    default_reason = "Invalid price"


class RapidTradingError(TradeRejectedError):
    default_reason = "Trading too quickly"


class InsufficientFundsError(TradeRejectedError):
    default_reason = "Insufficient funds"


class InsufficientSharesError(TradeRejectedError):
    default_reason = "Insufficient shares"


class SymbolAndQuantityRequiredError(TradeRejectedError):
    default_reason = "Symbol and quantity required"


class AccountError(SimulatorError):
    """Raised for registration and login failures."""

    default_reason = "Account error"


class RegistrationError(AccountError):
    """Raised when registration input breaks an account rule."""

    default_reason = "Invalid registration"


class UsernameTakenError(RegistrationError):
    default_reason = "Username already exists"


class InvalidCredentialsError(AccountError):
    default_reason = "Invalid credentials"


class AccessError(SimulatorError):
    """Raised when a session token cannot be resolved to a user."""

    default_reason = "Unauthorized"


class UnauthorizedError(AccessError):
    default_reason = "Unauthorized"


class SessionExpiredError(AccessError):
    default_reason = "Session expired or invalid"


class RateLimitExceededError(SimulatorError):
    default_reason = "Too many requests"


class GatewayError(SimulatorError):
    """Raised when market data cannot be fetched or is invalid."""

    default_reason = "Market data unavailable"


class GatewayUnavailableError(GatewayError):
    """Raised when a market data fetch exceeds the configured timeout."""

    default_reason = "Gateway unavailable"


REASON_ERRORS: dict[str, type[TradeRejectedError]] = {
    UserNotFoundError.default_reason: UserNotFoundError,
    InvalidQuantityError.default_reason: InvalidQuantityError,
    InvalidPriceError.default_reason: InvalidPriceError,
    RapidTradingError.default_reason: RapidTradingError,
    InsufficientFundsError.default_reason: InsufficientFundsError,
    InsufficientSharesError.default_reason: InsufficientSharesError,
    SymbolAndQuantityRequiredError.default_reason: SymbolAndQuantityRequiredError,
}


def error_for_reason(reason: str) -> TradeRejectedError:
    """Return the typed error matching a validator reason string."""
    error_cls = REASON_ERRORS.get(reason, TradeRejectedError)
    return error_cls(reason)
