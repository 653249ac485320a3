"""Core infrastructure modules for StockSim."""

from .clock import now_ms
from .config import MarketDataSourceName, SimulatorConfig, load_config
from .constants import (
    DEFAULT_SERIES_INTERVAL,
    DEFAULT_SERIES_RANGE,
    LEDGER_COLLECTIONS,
    TRANSACTIONS_COLLECTION,
    USERS_COLLECTION,
)
from .events import (
    DiagnosticEvent,
    SuspiciousActivityEvent,
    SuspiciousActivityKind,
)
from .telemetry import (
    FileTelemetrySink,
    LogTelemetrySink,
    TelemetryReporter,
    TelemetrySink,
    build_telemetry_reporter,
)

__all__ = [
    "now_ms",
    "SimulatorConfig",
    "MarketDataSourceName",
    "load_config",
    "USERS_COLLECTION",
    "TRANSACTIONS_COLLECTION",
    "LEDGER_COLLECTIONS",
    "DEFAULT_SERIES_RANGE",
    "DEFAULT_SERIES_INTERVAL",
    "SuspiciousActivityEvent",
    "SuspiciousActivityKind",
    "DiagnosticEvent",
    "TelemetrySink",
    "TelemetryReporter",
    "LogTelemetrySink",
    "FileTelemetrySink",
    "build_telemetry_reporter",
]
