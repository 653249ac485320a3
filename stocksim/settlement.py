"""Trade settlement: turns a buy/sell plus a fetched price into ledger mutations."""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal

from loguru import logger

from stocksim.core.clock import now_ms
from stocksim.errors import InsufficientFundsError, InsufficientSharesError
from stocksim.market_data import MarketDataGateway, fetch_price
from stocksim.models import (
    Holding,
    TradeResult,
    TradeSide,
    TransactionRecord,
    UserAccount,
    coerce_quantity,
)
from stocksim.store import LedgerStore
from stocksim.validation import TradeValidator


def apply_buy(holding: Holding | None, quantity: int, cost: Decimal) -> Holding:
    """Return the holding after buying ``quantity`` shares for ``cost`` dollars.

    The new average is total dollars over total shares, so repeated buys at
    different prices converge on the true cost basis.
    """
    old_quantity = holding.quantity if holding is not None else 0
    old_avg = holding.avg_price if holding is not None else Decimal("0")
    new_quantity = old_quantity + quantity
    new_avg = (old_avg * old_quantity + cost) / new_quantity
    return Holding(quantity=new_quantity, avg_price=new_avg)


def apply_sell(holding: Holding, quantity: int) -> Holding | None:
    """Return the holding after selling ``quantity`` shares, or None when flat.

    The average price of the remaining shares is unchanged.
    """
    remaining = holding.quantity - quantity
    if remaining == 0:
        return None
    return Holding(quantity=remaining, avg_price=holding.avg_price)


class SettlementEngine:
    """Applies validated buys and sells to a user's cash and portfolio.

    The price fetch is the only suspension point outside the store's mutation
    section. Validation, balance checks, the ledger append and persistence all
    run inside it without awaiting, so each settlement's mutation phase is
    atomic with respect to every other mutation.
    """

    def __init__(
        self,
        store: LedgerStore,
        gateway: MarketDataGateway,
        validator: TradeValidator,
        *,
        fetch_timeout: float = 10.0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._validator = validator
        self._fetch_timeout = fetch_timeout
        self._clock = clock

    async def buy(self, user_id: str, symbol: str, quantity: int) -> TradeResult:
        """Buy ``quantity`` shares of ``symbol`` at the current market price.

        Raises:
            GatewayError: If the price cannot be fetched
            TradeRejectedError: If validation fails or cash does not cover the cost
        """
        price = await fetch_price(self._gateway, symbol, timeout=self._fetch_timeout)

        async with self._store.mutation():
            now = self._clock()
            self._validator.validate(
                user_id, symbol, quantity, price, now_ms=now
            ).raise_for_reason()
            user = self._require_user(user_id)
            shares = coerce_quantity(quantity) or 0

            cost = price * shares
            if cost > user.cash:
                logger.info(
                    "Buy rejected for {}: cost {} exceeds cash {}", user_id, cost, user.cash
                )
                raise InsufficientFundsError()

            holding = apply_buy(user.portfolio.get(symbol), shares, cost)
            user.cash = user.cash - cost
            user.portfolio[symbol] = holding
            record = self._record(user, TradeSide.BUY, symbol, shares, price, now)
            result = self._result(user, record)

        logger.info(
            "Settled BUY {} {} @ {} for {} (cash now {})",
            shares,
            symbol,
            price,
            user_id,
            result.cash,
        )
        return result

    async def sell(self, user_id: str, symbol: str, quantity: int) -> TradeResult:
        """Sell ``quantity`` held shares of ``symbol`` at the current market price.

        Raises:
            GatewayError: If the price cannot be fetched
            TradeRejectedError: If validation fails or too few shares are held
        """
        price = await fetch_price(self._gateway, symbol, timeout=self._fetch_timeout)

        async with self._store.mutation():
            now = self._clock()
            self._validator.validate(
                user_id, symbol, quantity, price, now_ms=now
            ).raise_for_reason()
            user = self._require_user(user_id)
            shares = coerce_quantity(quantity) or 0

            holding = user.portfolio.get(symbol)
            if holding is None or holding.quantity < shares:
                logger.info(
                    "Sell rejected for {}: holds {} {}, asked {}",
                    user_id,
                    holding.quantity if holding else 0,
                    symbol,
                    shares,
                )
                raise InsufficientSharesError()

            remaining = apply_sell(holding, shares)
            user.cash = user.cash + price * shares
            if remaining is None:
                del user.portfolio[symbol]
            else:
                user.portfolio[symbol] = remaining
            record = self._record(user, TradeSide.SELL, symbol, shares, price, now)
            result = self._result(user, record)

        logger.info(
            "Settled SELL {} {} @ {} for {} (cash now {})",
            shares,
            symbol,
            price,
            user_id,
            result.cash,
        )
        return result

    def _require_user(self, user_id: str) -> UserAccount:
        user = self._store.get_user(user_id)
        if user is None:  # pragma: no cover - validator rejects unknown users first
            raise LookupError(user_id)
        return user

    def _ledger_timestamp(self, now: int) -> int:
        """Record time that never runs behind the last ledger entry.

        Only the stored timestamp is clamped; the rapid-trading window is
        measured against the raw clock reading.
        """
        return max(now, self._store.last_timestamp())

    def _record(
        self,
        user: UserAccount,
        side: TradeSide,
        symbol: str,
        quantity: int,
        price: Decimal,
        now: int,
    ) -> TransactionRecord:
        timestamp = self._ledger_timestamp(now)
        record = TransactionRecord(
            user_id=user.user_id,
            type=side,
            symbol=symbol,
            quantity=quantity,
            price=price,
            timestamp=timestamp,
        )
        user.last_activity = timestamp
        self._store.append_transaction(record)
        self._store.persist_users()
        self._store.persist_transactions()
        return record

    @staticmethod
    def _result(user: UserAccount, record: TransactionRecord) -> TradeResult:
        return TradeResult(
            cash=user.cash,
            portfolio={symbol: holding.model_copy() for symbol, holding in user.portfolio.items()},
            transaction=record,
        )
