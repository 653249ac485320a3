"""Boundary operations exposed to the routing/API layer and the CLI."""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal

from loguru import logger

from stocksim.accounts import AccountService, PasswordHasher
from stocksim.activity import RequestRateLimiter, SuspiciousActivityLog
from stocksim.core.clock import now_ms
from stocksim.core.config import SimulatorConfig
from stocksim.core.constants import DEFAULT_SERIES_INTERVAL, DEFAULT_SERIES_RANGE
from stocksim.core.events import SuspiciousActivityEvent, SuspiciousActivityKind
from stocksim.core.telemetry import TelemetryReporter, build_telemetry_reporter
from stocksim.errors import (
    InvalidQuantityError,
    SymbolAndQuantityRequiredError,
    UnauthorizedError,
    UserNotFoundError,
)
from stocksim.leaderboard import compute_leaderboard, value_portfolio
from stocksim.market_data import MarketDataGateway, build_gateway, fetch_price
from stocksim.models import (
    LeaderboardEntry,
    LoginResult,
    PortfolioValuation,
    PortfolioView,
    PriceSeries,
    TradeRequest,
    TradeResult,
    TransactionRecord,
    TutorialAnswerResult,
    TutorialStatus,
    UserAccount,
)
from stocksim.sessions import SessionManager
from stocksim.settlement import SettlementEngine
from stocksim.store import JsonFileBackend, LedgerBackend, LedgerStore
from stocksim.validation import TradeValidator


class TradingSimulator:
    """Facade over accounts, settlement and valuation.

    Each operation returns a pydantic payload or raises a ``SimulatorError``
    whose ``reason`` is safe to show the client.
    """

    def __init__(
        self,
        *,
        config: SimulatorConfig,
        store: LedgerStore,
        gateway: MarketDataGateway,
        activity: SuspiciousActivityLog,
        sessions: SessionManager,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.config = config
        self.store = store
        self.gateway = gateway
        self.activity = activity
        self.sessions = sessions
        self.validator = TradeValidator(
            store,
            activity,
            rapid_trade_limit=config.rapid_trade_limit,
            rapid_trade_window_ms=config.rapid_trade_window_ms,
        )
        self.engine = SettlementEngine(
            store,
            gateway,
            self.validator,
            fetch_timeout=config.price_fetch_timeout_seconds,
            clock=clock,
        )
        self.accounts = AccountService(
            store,
            activity,
            hasher=PasswordHasher(config.password_hash_iterations),
            starting_cash=config.starting_cash,
            username_min_length=config.username_min_length,
            username_max_length=config.username_max_length,
            password_min_length=config.password_min_length,
            clock=clock,
        )
        self.rate_limiter = RequestRateLimiter(
            activity,
            limit=config.request_rate_limit,
            window_seconds=config.request_rate_window_seconds,
        )

    # Access control

    def throttle(self, client_id: str | None, *, path: str | None = None) -> None:
        """Apply the per-client request limit when the caller is identified."""
        if client_id:
            self.rate_limiter.check(client_id, path=path)

    def resolve_session(self, token: str | None) -> str:
        """Resolve a session token to an existing user id."""
        user_id = self.sessions.resolve(token)
        if self.store.get_user(user_id) is None:
            raise UnauthorizedError("User invalid")
        return user_id

    async def register_user(
        self, username: str | None, password: str | None, *, client_id: str | None = None
    ) -> LoginResult:
        self.throttle(client_id, path="register")
        user = await self.accounts.register(username, password)
        return self._login_result(user)

    async def login(
        self, username: str | None, password: str | None, *, client_id: str | None = None
    ) -> LoginResult:
        self.throttle(client_id, path="login")
        user = await self.accounts.authenticate(username, password, client_id=client_id)
        return self._login_result(user)

    # Tutorial

    def current_tutorial_lesson(self, user_id: str) -> TutorialStatus:
        return self.accounts.tutorial_status(user_id)

    async def authenticate_and_award(
        self, token: str | None, answer_index: int
    ) -> TutorialAnswerResult:
        """Resolve the session, submit a tutorial answer and grant cash on completion."""
        user_id = self.resolve_session(token)
        return await self.accounts.answer_tutorial(user_id, answer_index)

    async def complete_ui_tutorial(self, user_id: str) -> None:
        await self.accounts.complete_ui_tutorial(user_id)

    # Portfolio and trading

    def get_portfolio(self, user_id: str) -> PortfolioView:
        user = self._require_user(user_id)
        return PortfolioView(
            username=user.username,
            cash=user.cash,
            portfolio={symbol: holding.model_copy() for symbol, holding in user.portfolio.items()},
            tutorial_step=user.tutorial_step,
            tutorial_completed=user.tutorial_completed,
            ui_tutorial_completed=user.ui_tutorial_completed,
        )

    async def get_portfolio_valuation(self, user_id: str) -> PortfolioValuation:
        user = self._require_user(user_id)
        return await value_portfolio(
            user, self.gateway, fetch_timeout=self.config.price_fetch_timeout_seconds
        )

    async def buy(
        self, user_id: str, symbol: object, quantity: object, *, client_id: str | None = None
    ) -> TradeResult:
        self.throttle(client_id, path="buy")
        request = self._trade_request(user_id, symbol, quantity)
        return await self.engine.buy(user_id, request.symbol, request.quantity)

    async def sell(
        self, user_id: str, symbol: object, quantity: object, *, client_id: str | None = None
    ) -> TradeResult:
        self.throttle(client_id, path="sell")
        request = self._trade_request(user_id, symbol, quantity)
        return await self.engine.sell(user_id, request.symbol, request.quantity)

    def get_transaction_history(
        self, user_id: str, limit: int | None = None, *, client_id: str | None = None
    ) -> list[TransactionRecord]:
        """Most recent transactions first, capped at ``limit``.

        Entries sharing a timestamp keep reverse ledger order.
        """
        self.throttle(client_id, path="transactions")
        limit = self.config.history_limit if limit is None else limit
        records = self.store.transactions_for(user_id)
        records.reverse()
        records.sort(key=lambda record: record.timestamp, reverse=True)
        return records[: max(limit, 0)]

    async def get_leaderboard(
        self, limit: int | None = None, *, client_id: str | None = None
    ) -> list[LeaderboardEntry]:
        self.throttle(client_id, path="leaderboard")
        limit = self.config.leaderboard_limit if limit is None else limit
        return await compute_leaderboard(
            self.store,
            self.gateway,
            limit=max(limit, 0),
            fetch_timeout=self.config.price_fetch_timeout_seconds,
        )

    # Market data

    async def get_quote(self, symbol: str) -> Decimal:
        return await fetch_price(
            self.gateway, symbol.strip().upper(), timeout=self.config.price_fetch_timeout_seconds
        )

    async def get_chart(
        self,
        symbol: str,
        period: str = DEFAULT_SERIES_RANGE,
        interval: str = DEFAULT_SERIES_INTERVAL,
    ) -> PriceSeries:
        return await self.gateway.get_series(symbol.strip().upper(), period, interval)

    def suspicious_activity(
        self, *, kind: SuspiciousActivityKind | None = None
    ) -> list[SuspiciousActivityEvent]:
        return self.activity.events(kind=kind)

    def _trade_request(self, user_id: str, symbol: object, quantity: object) -> TradeRequest:
        try:
            return TradeRequest.parse(symbol, quantity)
        except InvalidQuantityError:
            self.activity.record(
                user_id,
                SuspiciousActivityKind.INVALID_QUANTITY,
                {"symbol": symbol, "quantity": quantity},
            )
            raise
        except SymbolAndQuantityRequiredError:
            logger.debug("Trade request from {} missing symbol or quantity", user_id)
            raise

    def _require_user(self, user_id: str) -> UserAccount:
        user = self.store.get_user(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    def _login_result(self, user: UserAccount) -> LoginResult:
        return LoginResult(
            token=self.sessions.issue(user.user_id),
            user_id=user.user_id,
            username=user.username,
            cash=user.cash,
            portfolio={symbol: holding.model_copy() for symbol, holding in user.portfolio.items()},
            tutorial_step=user.tutorial_step,
            tutorial_completed=user.tutorial_completed,
            ui_tutorial_completed=user.ui_tutorial_completed,
        )


def build_simulator(
    config: SimulatorConfig,
    *,
    backend: LedgerBackend | None = None,
    gateway: MarketDataGateway | None = None,
    telemetry: TelemetryReporter | None = None,
    clock: Callable[[], int] = now_ms,
) -> TradingSimulator:
    """Construct the store and every component once, then load the ledger."""
    if telemetry is None:
        telemetry = build_telemetry_reporter(file_path=config.telemetry_file)
    store = LedgerStore(backend or JsonFileBackend(config.data_dir), telemetry=telemetry)
    store.load()
    activity = SuspiciousActivityLog(telemetry=telemetry)
    sessions = SessionManager(config.session_secret, ttl_seconds=config.session_ttl_seconds)
    return TradingSimulator(
        config=config,
        store=store,
        gateway=gateway or build_gateway(config),
        activity=activity,
        sessions=sessions,
        clock=clock,
    )
