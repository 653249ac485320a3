"""Pytest configuration for shared fixtures."""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal
from pathlib import Path

import pytest
from loguru import logger

from stocksim.activity import SuspiciousActivityLog
from stocksim.core.config import MarketDataSourceName, SimulatorConfig
from stocksim.market_data import StaticMarketDataGateway
from stocksim.models import Holding, UserAccount
from stocksim.service import TradingSimulator, build_simulator
from stocksim.store import InMemoryBackend, LedgerStore


@pytest.fixture(scope="session", autouse=True)
def silence_loguru_handlers() -> None:
    """Route Loguru output to a no-op sink during tests to avoid closed stream errors."""
    logger.remove()
    logger.add(lambda _: None, catch=True)
    yield


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def gateway() -> StaticMarketDataGateway:
    return StaticMarketDataGateway({"AAPL": "50", "MSFT": "300"})


@pytest.fixture()
def activity() -> SuspiciousActivityLog:
    return SuspiciousActivityLog()


@pytest.fixture()
def store() -> LedgerStore:
    return LedgerStore(InMemoryBackend())


def _make_user(
    user_id: str = "u1",
    *,
    username: str | None = None,
    cash: str = "100000",
    portfolio: dict[str, Holding] | None = None,
) -> UserAccount:
    return UserAccount(
        user_id=user_id,
        username=username or f"user_{user_id}",
        password_hash="x" * 64,
        cash=Decimal(cash),
        portfolio=portfolio or {},
        tutorial_step=5,
        tutorial_completed=True,
    )


@pytest.fixture()
def make_user() -> Callable[..., UserAccount]:
    return _make_user


@pytest.fixture()
def config(tmp_path: Path) -> SimulatorConfig:
    return SimulatorConfig(
        data_dir=tmp_path / "data",
        log_dir=tmp_path / "logs",
        market_data_source=MarketDataSourceName.STATIC,
        password_hash_iterations=1_000,
        price_fetch_timeout_seconds=0.5,
    )


@pytest.fixture()
def simulator(
    config: SimulatorConfig, gateway: StaticMarketDataGateway, clock: FakeClock
) -> TradingSimulator:
    return build_simulator(config, backend=InMemoryBackend(), gateway=gateway, clock=clock)
