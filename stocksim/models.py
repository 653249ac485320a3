"""Ledger and payload models using Pydantic v2."""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from stocksim.errors import InvalidQuantityError, SymbolAndQuantityRequiredError


class TradeSide(str, Enum):
    """Transaction side enumeration."""

    BUY = "BUY"
    SELL = "SELL"


class Holding(BaseModel):
    """Position in one symbol: share count and weighted-average cost.

    Ledger files written by the earlier Node server use ``avgPrice``; both
    spellings load, and dumps always use the snake_case field names.
    """

    quantity: Annotated[int, Field(gt=0, description="Shares held (always positive)")]
    avg_price: Annotated[
        Decimal,
        Field(
            gt=0,
            validation_alias=AliasChoices("avg_price", "avgPrice"),
            description="Weighted-average cost per share",
        ),
    ]

    @property
    def cost_basis(self) -> Decimal:
        return self.avg_price * self.quantity


class UserAccount(BaseModel):
    """Registered user with cash balance and holdings.

    Accepts the camelCase record layout of legacy ``users.json`` files
    (``userId``, ``password``, ``tutorialStep``, ...).
    """

    user_id: str = Field(validation_alias=AliasChoices("user_id", "userId"))
    username: str
    password_hash: str = Field(validation_alias=AliasChoices("password_hash", "password"))
    cash: Annotated[Decimal, Field(ge=0)] = Decimal("0")
    portfolio: dict[str, Holding] = Field(default_factory=dict)
    tutorial_step: int = Field(0, validation_alias=AliasChoices("tutorial_step", "tutorialStep"))
    tutorial_completed: bool = Field(
        False, validation_alias=AliasChoices("tutorial_completed", "tutorialCompleted")
    )
    ui_tutorial_completed: bool = Field(
        False, validation_alias=AliasChoices("ui_tutorial_completed", "uiTutorialCompleted")
    )
    created_at: int = Field(0, validation_alias=AliasChoices("created_at", "createdAt"))
    last_activity: int = Field(0, validation_alias=AliasChoices("last_activity", "lastActivity"))

    model_config = ConfigDict(validate_assignment=True)


class TransactionRecord(BaseModel):
    """Append-only ledger entry for a settled trade."""

    user_id: str = Field(validation_alias=AliasChoices("user_id", "userId"))
    type: TradeSide
    symbol: str
    quantity: Annotated[int, Field(gt=0)]
    price: Annotated[Decimal, Field(gt=0, description="Execution price used for the cash delta")]
    timestamp: int = Field(..., description="Settlement time in epoch milliseconds")

    model_config = ConfigDict(frozen=True)

    @property
    def notional(self) -> Decimal:
        return self.price * self.quantity


class TradeResult(BaseModel):
    """Outcome of a settled buy or sell."""

    cash: Decimal
    portfolio: dict[str, Holding]
    transaction: TransactionRecord


class PortfolioView(BaseModel):
    """Read-only snapshot of an account for display."""

    username: str
    cash: Decimal
    portfolio: dict[str, Holding]
    tutorial_step: int
    tutorial_completed: bool
    ui_tutorial_completed: bool


class HoldingValuation(BaseModel):
    """Mark-to-market view of one holding; nothing here is stored."""

    symbol: str
    quantity: int
    avg_price: Decimal
    current_price: Decimal | None = None
    market_value: Decimal | None = None
    unrealized_pnl: Decimal | None = None
    unrealized_pnl_percent: Decimal | None = None


class PortfolioValuation(BaseModel):
    """Cash plus mark-to-market holdings for one user."""

    username: str
    cash: Decimal
    holdings: list[HoldingValuation]
    portfolio_value: Decimal
    total_value: Decimal


class LeaderboardEntry(BaseModel):
    username: str
    total_value: Decimal
    cash: Decimal
    portfolio_value: Decimal


class Candle(BaseModel):
    """OHLC bar; ``x`` is the bar time in epoch milliseconds."""

    x: int
    o: Decimal
    h: Decimal
    l: Decimal  # noqa: E741
    c: Decimal


class PriceSeries(BaseModel):
    """Price history for charting plus the latest price."""

    symbol: str
    timestamps: list[int] = Field(default_factory=list)
    prices: list[Decimal | None] = Field(default_factory=list)
    candles: list[Candle] = Field(default_factory=list)
    current_price: Decimal


class TutorialLesson(BaseModel):
    id: str
    title: str
    content: str
    question: str
    options: list[str]
    correct_answer: int

    model_config = ConfigDict(frozen=True)


class TutorialStatus(BaseModel):
    """Current tutorial lesson (answer withheld) or a completion marker."""

    completed: bool
    step: int | None = None
    total: int
    lesson: dict[str, Any] | None = None
    tutorial_completed: bool
    ui_tutorial_completed: bool


class TutorialAnswerResult(BaseModel):
    correct: bool
    completed: bool = False
    next_step: int | None = None
    message: str = ""
    cash: Decimal | None = None


class LoginResult(BaseModel):
    token: str
    user_id: str
    username: str
    cash: Decimal
    portfolio: dict[str, Holding]
    tutorial_step: int
    tutorial_completed: bool
    ui_tutorial_completed: bool


def coerce_quantity(value: object) -> int | None:
    """Return ``value`` as a positive int, or None when it is not one.

    Integral floats and decimals (``10.0``) are accepted; booleans, strings,
    fractions, zero and negatives are not.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        return int(value) if value > 0 else None
    if isinstance(value, Decimal):
        try:
            if not value.is_finite() or value != value.to_integral_value():
                return None
        except InvalidOperation:
            return None
        return int(value) if value > 0 else None
    return None


def coerce_price(value: object) -> Decimal | None:
    """Return ``value`` as a positive Decimal, or None when it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        try:
            price = value if isinstance(value, Decimal) else Decimal(str(value))
        except InvalidOperation:
            return None
        if not price.is_finite() or price <= 0:
            return None
        return price
    return None


class TradeRequest(BaseModel):
    """Boundary schema for buy/sell request bodies."""

    symbol: str
    quantity: int

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="before")
    @classmethod
    def require_symbol_and_quantity(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            raise SymbolAndQuantityRequiredError()
        symbol = data.get("symbol")
        quantity = data.get("quantity")
        if not symbol or not isinstance(symbol, str) or not symbol.strip():
            raise SymbolAndQuantityRequiredError()
        if quantity is None or quantity == "" or quantity == 0:
            raise SymbolAndQuantityRequiredError()
        return data

    @field_validator("symbol")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        """Symbols are stored upper-case by convention."""
        return v.strip().upper()

    @field_validator("quantity", mode="before")
    @classmethod
    def validate_quantity(cls, v: object) -> int:
        quantity = coerce_quantity(v)
        if quantity is None:
            raise InvalidQuantityError()
        return quantity

    @classmethod
    def parse(cls, symbol: object, quantity: object) -> TradeRequest:
        """Build a request, letting typed simulator errors escape unchanged."""
        return cls.model_validate({"symbol": symbol, "quantity": quantity})
