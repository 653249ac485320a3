"""Tests for ledger models and the trade request schema."""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from stocksim.errors import InvalidQuantityError, SymbolAndQuantityRequiredError
from stocksim.models import (
    Holding,
    TradeRequest,
    TradeSide,
    TransactionRecord,
    UserAccount,
    coerce_price,
    coerce_quantity,
)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (10, 10),
        (10.0, 10),
        (Decimal("3"), 3),
        (0, None),
        (-5, None),
        (1.5, None),
        (float("nan"), None),
        (True, None),
        ("10", None),
        (None, None),
    ],
)
def test_coerce_quantity(value: object, expected: int | None) -> None:
    assert coerce_quantity(value) == expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (50, Decimal("50")),
        (12.5, Decimal("12.5")),
        (Decimal("0.01"), Decimal("0.01")),
        (0, None),
        (-1, None),
        (float("inf"), None),
        ("50", None),
        (False, None),
    ],
)
def test_coerce_price(value: object, expected: Decimal | None) -> None:
    assert coerce_price(value) == expected


def test_trade_request_normalizes_symbol() -> None:
    request = TradeRequest.parse("  aapl ", 10)

    assert request.symbol == "AAPL"
    assert request.quantity == 10


@pytest.mark.parametrize(
    ("symbol", "quantity"),
    [(None, 10), ("", 10), ("   ", 10), ("AAPL", None), ("AAPL", 0), (42, 10)],
)
def test_trade_request_requires_symbol_and_quantity(symbol: object, quantity: object) -> None:
    with pytest.raises(SymbolAndQuantityRequiredError) as exc_info:
        TradeRequest.parse(symbol, quantity)

    assert str(exc_info.value) == "Symbol and quantity required"


@pytest.mark.parametrize("quantity", [-5, 2.5, "ten", True])
def test_trade_request_rejects_bad_quantity(quantity: object) -> None:
    with pytest.raises(InvalidQuantityError):
        TradeRequest.parse("AAPL", quantity)


def test_holding_requires_positive_quantity() -> None:
    with pytest.raises(ValidationError):
        Holding(quantity=0, avg_price=Decimal("10"))

    holding = Holding(quantity=4, avg_price=Decimal("2.5"))
    assert holding.cost_basis == Decimal("10.0")


def test_user_account_rejects_negative_cash_assignment() -> None:
    user = UserAccount(user_id="u1", username="alice", password_hash="h")

    assert user.cash == Decimal("0")
    with pytest.raises(ValidationError):
        user.cash = Decimal("-1")


def test_transaction_record_json_round_trip_keeps_decimal_precision() -> None:
    record = TransactionRecord(
        user_id="u1",
        type=TradeSide.BUY,
        symbol="AAPL",
        quantity=3,
        price=Decimal("0.1"),
        timestamp=1_700_000_000_000,
    )

    dumped = record.model_dump(mode="json")
    restored = TransactionRecord.model_validate(dumped)

    assert dumped["type"] == "BUY"
    assert restored.price == Decimal("0.1")
    assert restored.notional == Decimal("0.3")
