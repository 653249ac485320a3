"""Read-only valuation of accounts at current market prices."""

from __future__ import annotations

from decimal import Decimal

from loguru import logger

from stocksim.core.constants import HUNDRED, ZERO
from stocksim.errors import GatewayError
from stocksim.market_data import MarketDataGateway, fetch_price
from stocksim.models import (
    HoldingValuation,
    LeaderboardEntry,
    PortfolioValuation,
    UserAccount,
)
from stocksim.store import LedgerStore


async def _price_or_none(
    gateway: MarketDataGateway, symbol: str, *, timeout: float
) -> Decimal | None:
    try:
        return await fetch_price(gateway, symbol, timeout=timeout)
    except GatewayError as exc:
        logger.warning("Excluding {} from valuation: {}", symbol, exc)
        return None


async def compute_leaderboard(
    store: LedgerStore,
    gateway: MarketDataGateway,
    *,
    limit: int = 100,
    fetch_timeout: float = 10.0,
) -> list[LeaderboardEntry]:
    """Rank every user by cash plus mark-to-market holdings.

    Prices are fetched fresh for every holding of every user. A symbol whose
    fetch fails is left out of that user's total instead of failing the whole
    board.
    """
    entries: list[LeaderboardEntry] = []
    for user in store.iter_users():
        cash = user.cash
        holdings = list(user.portfolio.items())
        portfolio_value = ZERO
        for symbol, holding in holdings:
            price = await _price_or_none(gateway, symbol, timeout=fetch_timeout)
            if price is not None:
                portfolio_value += price * holding.quantity
        entries.append(
            LeaderboardEntry(
                username=user.username,
                total_value=cash + portfolio_value,
                cash=cash,
                portfolio_value=portfolio_value,
            )
        )

    entries.sort(key=lambda entry: entry.total_value, reverse=True)
    return entries[:limit]


async def value_portfolio(
    user: UserAccount,
    gateway: MarketDataGateway,
    *,
    fetch_timeout: float = 10.0,
) -> PortfolioValuation:
    """Mark one user's holdings to market with transient unrealized P&L."""
    cash = user.cash
    holdings: list[HoldingValuation] = []
    portfolio_value = ZERO
    for symbol, holding in sorted(user.portfolio.items()):
        price = await _price_or_none(gateway, symbol, timeout=fetch_timeout)
        if price is None:
            holdings.append(
                HoldingValuation(
                    symbol=symbol, quantity=holding.quantity, avg_price=holding.avg_price
                )
            )
            continue
        market_value = price * holding.quantity
        pnl = market_value - holding.cost_basis
        holdings.append(
            HoldingValuation(
                symbol=symbol,
                quantity=holding.quantity,
                avg_price=holding.avg_price,
                current_price=price,
                market_value=market_value,
                unrealized_pnl=pnl,
                unrealized_pnl_percent=(price - holding.avg_price) / holding.avg_price * HUNDRED,
            )
        )
        portfolio_value += market_value

    return PortfolioValuation(
        username=user.username,
        cash=cash,
        holdings=holdings,
        portfolio_value=portfolio_value,
        total_value=cash + portfolio_value,
    )
