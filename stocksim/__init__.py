"""StockSim - A paper-trading simulator with tutorial-gated starting cash."""

__version__ = "0.1.0"

from stocksim.core.config import MarketDataSourceName, SimulatorConfig, load_config
from stocksim.errors import (
    AccessError,
    AccountError,
    GatewayError,
    GatewayUnavailableError,
    SimulatorError,
    TradeRejectedError,
)
from stocksim.market_data import MarketDataGateway, StaticMarketDataGateway, YFinanceGateway
from stocksim.models import (
    Holding,
    TradeRequest,
    TradeResult,
    TradeSide,
    TransactionRecord,
    UserAccount,
)
from stocksim.service import TradingSimulator, build_simulator
from stocksim.settlement import SettlementEngine
from stocksim.store import InMemoryBackend, JsonFileBackend, LedgerStore
from stocksim.validation import TradeValidator, ValidationResult

__all__ = [
    "SimulatorConfig",
    "MarketDataSourceName",
    "load_config",
    "SimulatorError",
    "TradeRejectedError",
    "AccountError",
    "AccessError",
    "GatewayError",
    "GatewayUnavailableError",
    "MarketDataGateway",
    "StaticMarketDataGateway",
    "YFinanceGateway",
    "Holding",
    "TradeRequest",
    "TradeResult",
    "TradeSide",
    "TransactionRecord",
    "UserAccount",
    "TradingSimulator",
    "build_simulator",
    "SettlementEngine",
    "LedgerStore",
    "JsonFileBackend",
    "InMemoryBackend",
    "TradeValidator",
    "ValidationResult",
]
