"""End-to-end tests for the boundary operations."""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal
from pathlib import Path

import pytest

from stocksim.core.config import MarketDataSourceName, SimulatorConfig
from stocksim.core.events import SuspiciousActivityKind
from stocksim.errors import (
    InsufficientFundsError,
    InvalidQuantityError,
    RateLimitExceededError,
    SymbolAndQuantityRequiredError,
    UnauthorizedError,
    UserNotFoundError,
)
from stocksim.market_data import StaticMarketDataGateway
from stocksim.models import TradeSide
from stocksim.service import TradingSimulator, build_simulator
from stocksim.tutorial import TUTORIAL_LESSONS

ANSWERS = [lesson.correct_answer for lesson in TUTORIAL_LESSONS]


async def _funded_user(simulator: TradingSimulator, username: str = "alice") -> tuple[str, str]:
    login = await simulator.register_user(username, "secret1")
    for answer in ANSWERS:
        await simulator.authenticate_and_award(login.token, answer)
    return login.user_id, login.token


@pytest.mark.asyncio
async def test_full_trading_lifecycle(
    simulator: TradingSimulator, gateway: StaticMarketDataGateway, clock
) -> None:
    login = await simulator.register_user("alice", "secret1")
    assert login.cash == Decimal("0")
    assert simulator.resolve_session(login.token) == login.user_id

    result = None
    for answer in ANSWERS:
        result = await simulator.authenticate_and_award(login.token, answer)
    assert result is not None and result.completed
    assert simulator.get_portfolio(login.user_id).cash == Decimal("100000")

    bought = await simulator.buy(login.user_id, "aapl", 10)
    assert bought.cash == Decimal("99500")
    assert bought.portfolio["AAPL"].avg_price == Decimal("50")

    gateway.set_price("AAPL", "60")
    clock.advance(1_500)
    sold = await simulator.sell(login.user_id, "AAPL", 10)
    assert sold.cash == Decimal("100100")
    assert sold.portfolio == {}

    history = simulator.get_transaction_history(login.user_id)
    assert [record.type for record in history] == [TradeSide.SELL, TradeSide.BUY]

    [entry] = await simulator.get_leaderboard()
    assert entry.username == "alice"
    assert entry.total_value == Decimal("100100")


@pytest.mark.asyncio
async def test_unfunded_user_cannot_buy(simulator: TradingSimulator) -> None:
    login = await simulator.register_user("bob", "secret1")

    with pytest.raises(InsufficientFundsError):
        await simulator.buy(login.user_id, "AAPL", 1)


@pytest.mark.asyncio
async def test_login_returns_fresh_token(simulator: TradingSimulator) -> None:
    registered = await simulator.register_user("alice", "secret1")

    login = await simulator.login("alice", "secret1")

    assert login.user_id == registered.user_id
    assert simulator.resolve_session(login.token) == registered.user_id


@pytest.mark.asyncio
async def test_trade_request_errors(simulator: TradingSimulator) -> None:
    user_id, _ = await _funded_user(simulator)

    with pytest.raises(SymbolAndQuantityRequiredError):
        await simulator.buy(user_id, "", 10)
    with pytest.raises(SymbolAndQuantityRequiredError):
        await simulator.sell(user_id, "AAPL", None)
    with pytest.raises(InvalidQuantityError):
        await simulator.buy(user_id, "AAPL", -10)

    [event] = simulator.suspicious_activity(kind=SuspiciousActivityKind.INVALID_QUANTITY)
    assert event.identifier == user_id
    assert simulator.get_transaction_history(user_id) == []


@pytest.mark.asyncio
async def test_resolve_session_rejects_deleted_user(simulator: TradingSimulator) -> None:
    login = await simulator.register_user("alice", "secret1")
    del simulator.store.users[login.user_id]

    with pytest.raises(UnauthorizedError, match="User invalid"):
        simulator.resolve_session(login.token)
    with pytest.raises(UnauthorizedError):
        await simulator.authenticate_and_award(login.token, ANSWERS[0])


@pytest.mark.asyncio
async def test_history_is_newest_first_and_limited(
    simulator: TradingSimulator, clock
) -> None:
    user_id, _ = await _funded_user(simulator)
    for quantity in range(1, 8):
        await simulator.buy(user_id, "AAPL", quantity)
        clock.advance(1_000)

    history = simulator.get_transaction_history(user_id, limit=3)

    assert [record.quantity for record in history] == [7, 6, 5]
    assert len(simulator.get_transaction_history(user_id)) == 7


@pytest.mark.asyncio
async def test_portfolio_valuation_and_quote(simulator: TradingSimulator) -> None:
    user_id, _ = await _funded_user(simulator)
    await simulator.buy(user_id, "MSFT", 2)

    valuation = await simulator.get_portfolio_valuation(user_id)
    assert valuation.portfolio_value == Decimal("600")
    assert valuation.total_value == Decimal("100000")

    assert await simulator.get_quote(" msft ") == Decimal("300")
    chart = await simulator.get_chart("msft")
    assert chart.symbol == "MSFT"
    assert chart.candles

    with pytest.raises(UserNotFoundError):
        simulator.get_portfolio("ghost")


@pytest.mark.asyncio
async def test_request_rate_limit_applies_per_client(
    tmp_path: Path, gateway: StaticMarketDataGateway
) -> None:
    config = SimulatorConfig(
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        market_data_source=MarketDataSourceName.STATIC,
        password_hash_iterations=1_000,
        request_rate_limit=2,
    )
    simulator = build_simulator(config, gateway=gateway)
    await simulator.register_user("alice", "secret1", client_id="10.0.0.1")
    await simulator.login("alice", "secret1", client_id="10.0.0.1")

    with pytest.raises(RateLimitExceededError):
        await simulator.login("alice", "secret1", client_id="10.0.0.1")
    await simulator.login("alice", "secret1", client_id="10.0.0.2")

    assert simulator.suspicious_activity(kind=SuspiciousActivityKind.RATE_LIMIT_EXCEEDED)


@pytest.mark.asyncio
async def test_ledger_survives_restart(tmp_path: Path, gateway: StaticMarketDataGateway) -> None:
    config = SimulatorConfig(
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        market_data_source=MarketDataSourceName.STATIC,
        password_hash_iterations=1_000,
    )
    first = build_simulator(config, gateway=gateway)
    user_id, _ = await _funded_user(first)
    await first.buy(user_id, "AAPL", 4)

    second = build_simulator(config, gateway=gateway)

    view = second.get_portfolio(user_id)
    assert view.cash == Decimal("99800")
    assert view.portfolio["AAPL"].quantity == 4
    assert len(second.get_transaction_history(user_id)) == 1
    assert (await second.login("alice", "secret1")).user_id == user_id


@pytest.mark.asyncio
async def test_request_rate_limit_covers_trading_routes(
    tmp_path: Path, gateway: StaticMarketDataGateway
) -> None:
    config = SimulatorConfig(
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        market_data_source=MarketDataSourceName.STATIC,
        password_hash_iterations=1_000,
        request_rate_limit=2,
    )
    simulator = build_simulator(config, gateway=gateway)
    user_id, _ = await _funded_user(simulator)

    await simulator.buy(user_id, "AAPL", 1, client_id="10.0.0.1")
    await simulator.sell(user_id, "AAPL", 1, client_id="10.0.0.1")
    with pytest.raises(RateLimitExceededError, match="Too many requests"):
        await simulator.buy(user_id, "AAPL", 1, client_id="10.0.0.1")
    with pytest.raises(RateLimitExceededError):
        simulator.get_transaction_history(user_id, client_id="10.0.0.1")
    with pytest.raises(RateLimitExceededError):
        await simulator.get_leaderboard(client_id="10.0.0.1")

    assert len(simulator.store.transactions) == 2
    assert len(await simulator.get_leaderboard(client_id="10.0.0.2")) == 1
    [event, *_] = simulator.suspicious_activity(kind=SuspiciousActivityKind.RATE_LIMIT_EXCEEDED)
    assert event.detail["path"] == "buy"


@pytest.mark.asyncio
async def test_history_breaks_timestamp_ties_newest_first(simulator: TradingSimulator) -> None:
    user_id, _ = await _funded_user(simulator)
    for quantity in (1, 2, 3):
        await simulator.buy(user_id, "AAPL", quantity)

    history = simulator.get_transaction_history(user_id)

    assert len({record.timestamp for record in history}) == 1
    assert [record.quantity for record in history] == [3, 2, 1]


@pytest.mark.asyncio
async def test_loads_legacy_camel_case_ledger(
    tmp_path: Path, gateway: StaticMarketDataGateway
) -> None:
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    users = {
        "legacy-1": {
            "userId": "legacy-1",
            "username": "oldtimer",
            "password": hashlib.sha256(b"secret1").hexdigest(),
            "cash": 99_000.5,
            "portfolio": {"MSFT": {"quantity": 3, "avgPrice": 250.25}},
            "tutorialStep": 5,
            "tutorialCompleted": True,
            "uiTutorialCompleted": False,
            "createdAt": 1_690_000_000_000,
            "lastActivity": 1_690_000_100_000,
        }
    }
    transactions = [
        {
            "userId": "legacy-1",
            "type": "BUY",
            "symbol": "MSFT",
            "quantity": 3,
            "price": 250.25,
            "timestamp": 1_690_000_100_000,
        }
    ]
    (data_dir / "users.json").write_text(json.dumps(users), encoding="utf-8")
    (data_dir / "transactions.json").write_text(json.dumps(transactions), encoding="utf-8")
    config = SimulatorConfig(
        data_dir=data_dir,
        log_dir=tmp_path / "logs",
        market_data_source=MarketDataSourceName.STATIC,
        password_hash_iterations=1_000,
    )

    simulator = build_simulator(config, gateway=gateway)
    login = await simulator.login("oldtimer", "secret1")

    assert login.user_id == "legacy-1"
    assert login.tutorial_completed
    assert login.portfolio["MSFT"].avg_price == Decimal("250.25")
    assert login.cash == Decimal("99000.5")
    [record] = simulator.get_transaction_history("legacy-1")
    assert record.price == Decimal("250.25")

    saved = json.loads((data_dir / "users.json").read_text(encoding="utf-8"))
    [user] = saved
    assert user["user_id"] == "legacy-1"
    assert user["password_hash"].startswith("pbkdf2_sha256$")
    assert user["portfolio"]["MSFT"]["avg_price"] == "250.25"
