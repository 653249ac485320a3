"""Market data gateway abstractions and concrete sources."""

from __future__ import annotations

import asyncio
import json
import math
from collections.abc import Callable, Mapping
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Protocol

import pandas as pd
import yfinance as yf
from loguru import logger

from stocksim.core.config import MarketDataSourceName, SimulatorConfig
from stocksim.core.constants import (
    DEFAULT_SERIES_INTERVAL,
    DEFAULT_SERIES_RANGE,
    QUOTE_HISTORY_INTERVAL,
    QUOTE_HISTORY_PERIOD,
)
from stocksim.errors import GatewayError, GatewayUnavailableError
from stocksim.models import Candle, PriceSeries


class MarketDataGateway(Protocol):
    """Protocol implemented by market data sources.

    Implementations must raise ``GatewayError`` instead of returning a
    missing or non-positive price.
    """

    async def get_current_price(self, symbol: str) -> Decimal:
        """Return the latest positive price for ``symbol``."""

    async def get_series(
        self,
        symbol: str,
        period: str = DEFAULT_SERIES_RANGE,
        interval: str = DEFAULT_SERIES_INTERVAL,
    ) -> PriceSeries:
        """Return a price series for charting."""


def ensure_positive_price(symbol: str, value: object) -> Decimal:
    """Convert a raw quote to a positive Decimal or raise GatewayError."""
    if value is None or isinstance(value, bool):
        raise GatewayError(f"Error fetching {symbol}: Invalid stock price")
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise GatewayError(f"Error fetching {symbol}: Invalid stock price") from exc
    if not price.is_finite() or price <= 0:
        raise GatewayError(f"Error fetching {symbol}: Invalid stock price")
    return price


async def fetch_price(gateway: MarketDataGateway, symbol: str, *, timeout: float) -> Decimal:
    """Fetch a price with a bounded wait.

    Raises:
        GatewayUnavailableError: If the gateway does not answer within ``timeout``
        GatewayError: If the gateway fails or returns an unusable price
    """
    try:
        raw = await asyncio.wait_for(gateway.get_current_price(symbol), timeout=timeout)
    except TimeoutError as exc:
        logger.warning("Price fetch for {} timed out after {}s", symbol, timeout)
        raise GatewayUnavailableError() from exc
    except GatewayError:
        raise
    except Exception as exc:
        raise GatewayError(f"Error fetching {symbol}: {exc}") from exc
    return ensure_positive_price(symbol, raw)


def _to_decimal(value: object) -> Decimal | None:
    if value is None:
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return Decimal(str(number))


def series_from_frame(
    symbol: str, frame: pd.DataFrame, current_price: Decimal | None = None
) -> PriceSeries:
    """Build a PriceSeries from an OHLC dataframe indexed by timestamp.

    Rows with any missing OHLC value are left out of ``candles`` but kept in
    ``timestamps``/``prices`` (as ``None``) so the close line keeps its gaps.
    """
    if frame.empty:
        raise GatewayError("Error fetching chart: Chart data missing")

    frame = frame.rename(columns=lambda c: str(c).strip().lower().replace(" ", "_"))
    index = pd.DatetimeIndex(frame.index)
    if index.tz is None:
        index = index.tz_localize("UTC")

    timestamps: list[int] = []
    prices: list[Decimal | None] = []
    candles: list[Candle] = []
    for ts, (_, row) in zip(index, frame.iterrows(), strict=True):
        seconds = int(ts.timestamp())
        close = _to_decimal(row.get("close"))
        timestamps.append(seconds)
        prices.append(close)
        ohlc = [_to_decimal(row.get(key)) for key in ("open", "high", "low", "close")]
        if any(value is None for value in ohlc):
            continue
        o, h, l, c = ohlc  # noqa: E741
        candles.append(Candle(x=seconds * 1000, o=o, h=h, l=l, c=c))

    latest = current_price
    if latest is None:
        if candles:
            latest = candles[-1].c
        else:
            latest = next((p for p in reversed(prices) if p is not None), None)
    if latest is None:
        raise GatewayError("Error fetching chart: Chart data missing")

    return PriceSeries(
        symbol=symbol,
        timestamps=timestamps,
        prices=prices,
        candles=candles,
        current_price=latest,
    )


class YFinanceGateway:
    """Fetch quotes and charts from Yahoo! Finance.

    yfinance is blocking, so calls run in a worker thread.
    """

    def __init__(self, ticker_factory: Callable[[str], Any] | None = None) -> None:
        self._ticker_factory = ticker_factory or yf.Ticker

    async def get_current_price(self, symbol: str) -> Decimal:
        return await asyncio.to_thread(self._fetch_price, symbol)

    async def get_series(
        self,
        symbol: str,
        period: str = DEFAULT_SERIES_RANGE,
        interval: str = DEFAULT_SERIES_INTERVAL,
    ) -> PriceSeries:
        return await asyncio.to_thread(self._fetch_series, symbol, period, interval)

    def _fetch_price(self, symbol: str) -> Decimal:
        try:
            ticker = self._ticker_factory(symbol)
            raw = _fast_last_price(ticker)
            if _to_decimal(raw) is None:
                frame = ticker.history(
                    period=QUOTE_HISTORY_PERIOD, interval=QUOTE_HISTORY_INTERVAL
                )
                closes = frame["Close"].dropna() if "Close" in frame else pd.Series(dtype=float)
                raw = closes.iloc[-1] if len(closes) else None
        except GatewayError:
            raise
        except Exception as exc:
            raise GatewayError(f"Error fetching {symbol}: {exc}") from exc
        return ensure_positive_price(symbol, raw)

    def _fetch_series(self, symbol: str, period: str, interval: str) -> PriceSeries:
        try:
            ticker = self._ticker_factory(symbol)
            frame = ticker.history(period=period, interval=interval)
            current = _to_decimal(_fast_last_price(ticker))
        except Exception as exc:
            raise GatewayError(f"Error fetching chart: {exc}") from exc
        if current is not None and current <= 0:
            current = None
        return series_from_frame(symbol, frame, current)


def _fast_last_price(ticker: Any) -> object:
    fast_info = getattr(ticker, "fast_info", None)
    if fast_info is None:
        return None
    try:
        return fast_info["lastPrice"]
    except (KeyError, TypeError):
        return getattr(fast_info, "last_price", None)


class StaticMarketDataGateway:
    """Serve prices from an in-memory table (offline runs and tests).

    Symbols can be marked as failing, and an optional delay simulates a slow
    upstream.
    """

    def __init__(
        self,
        prices: Mapping[str, Decimal | float | int | str] | None = None,
        *,
        delay_seconds: float = 0.0,
    ) -> None:
        self._prices: dict[str, Decimal] = {}
        self._failing: set[str] = set()
        self.delay_seconds = delay_seconds
        self.calls: list[str] = []
        for symbol, price in (prices or {}).items():
            self.set_price(symbol, price)

    @classmethod
    def from_file(cls, path: Path) -> StaticMarketDataGateway:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls({str(symbol): str(price) for symbol, price in data.items()})

    def set_price(self, symbol: str, price: Decimal | float | int | str) -> None:
        self._prices[symbol.upper()] = Decimal(str(price))
        self._failing.discard(symbol.upper())

    def fail(self, symbol: str) -> None:
        self._failing.add(symbol.upper())

    async def get_current_price(self, symbol: str) -> Decimal:
        self.calls.append(symbol)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        key = symbol.upper()
        if key in self._failing:
            raise GatewayError(f"Error fetching {symbol}: Failed to fetch stock price")
        if key not in self._prices:
            raise GatewayError(f"Error fetching {symbol}: Unknown symbol")
        return ensure_positive_price(symbol, self._prices[key])

    async def get_series(
        self,
        symbol: str,
        period: str = DEFAULT_SERIES_RANGE,
        interval: str = DEFAULT_SERIES_INTERVAL,
    ) -> PriceSeries:
        price = await self.get_current_price(symbol)
        now = pd.Timestamp.now(tz="UTC").floor("min")
        index = pd.date_range(end=now, periods=2, freq="5min")
        frame = pd.DataFrame(
            {column: [price, price] for column in ("Open", "High", "Low", "Close")},
            index=index,
        )
        return series_from_frame(symbol.upper(), frame, price)


def build_gateway(config: SimulatorConfig) -> MarketDataGateway:
    """Instantiate the market data source named by the configuration."""
    if config.market_data_source == MarketDataSourceName.STATIC:
        if config.static_prices_file is not None and config.static_prices_file.exists():
            return StaticMarketDataGateway.from_file(config.static_prices_file)
        logger.warning("Static market data selected without a prices file; all quotes will fail")
        return StaticMarketDataGateway()
    return YFinanceGateway()
