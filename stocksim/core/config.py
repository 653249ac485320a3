"""Configuration management for the StockSim trading simulator."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from pathlib import Path

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MarketDataSourceName(str, Enum):
    """Market data backends selectable from configuration."""

    YFINANCE = "yfinance"
    STATIC = "static"


class SimulatorConfig(BaseSettings):
    """Simulator configuration.

    Uses Pydantic v2 settings with environment variable support.
    """

    model_config = SettingsConfigDict(
        env_prefix="STOCKSIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Account funding
    starting_cash: Decimal = Field(
        default=Decimal("100000"),
        description="Cash awarded once when the tutorial is completed",
    )

    # Anti-abuse settings
    rapid_trade_limit: int = Field(
        default=5, description="Maximum settled trades per user inside the rapid-trade window"
    )
    rapid_trade_window_ms: int = Field(
        default=1000, description="Trailing window (ms) used for rapid-trade detection"
    )
    request_rate_limit: int = Field(
        default=100, description="Maximum requests per client inside the request window"
    )
    request_rate_window_seconds: float = Field(
        default=60.0, description="Sliding window (seconds) for the request rate limiter"
    )

    # Read limits
    leaderboard_limit: int = Field(default=100, description="Leaderboard entries returned")
    history_limit: int = Field(default=100, description="Transaction history entries returned")

    # Market data
    market_data_source: MarketDataSourceName = Field(
        default=MarketDataSourceName.YFINANCE,
        description="Market data backend - yfinance or static",
    )
    price_fetch_timeout_seconds: float = Field(
        default=10.0,
        description="Upper bound on a single price fetch before 'Gateway unavailable'",
    )
    static_prices_file: Path | None = Field(
        default=None,
        description="JSON file of symbol -> price used by the static market data source",
    )

    # Accounts and sessions
    username_min_length: int = Field(default=3, description="Minimum username length")
    username_max_length: int = Field(default=20, description="Maximum username length")
    password_min_length: int = Field(default=6, description="Minimum password length")
    password_hash_iterations: int = Field(
        default=200_000, description="PBKDF2 iterations used for password hashing"
    )
    session_secret: str = Field(
        default="dev-secret-key-change-this",
        description="Secret used to sign session tokens",
    )
    session_ttl_seconds: int = Field(
        default=7 * 24 * 60 * 60, description="Session token lifetime in seconds"
    )

    # Data paths
    data_dir: Path = Field(default=Path("data"), description="Directory for ledger files")
    log_dir: Path = Field(default=Path("logs"), description="Directory for logs")

    @field_validator(
        "rapid_trade_limit",
        "rapid_trade_window_ms",
        "request_rate_limit",
        "leaderboard_limit",
        "history_limit",
        "password_hash_iterations",
        "session_ttl_seconds",
    )
    @classmethod
    def validate_positive_int(cls, value: int) -> int:
        """Reject zero or negative limits."""
        if value <= 0:
            raise ValueError("value must be a positive integer")
        return value

    @field_validator("price_fetch_timeout_seconds", "request_rate_window_seconds")
    @classmethod
    def validate_positive_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("duration must be positive")
        return value

    @field_validator("starting_cash")
    @classmethod
    def validate_starting_cash(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("starting_cash cannot be negative")
        return value

    @field_validator("username_max_length")
    @classmethod
    def validate_username_bounds(cls, value: int, info: ValidationInfo) -> int:
        """Ensure the username length window is not empty."""
        minimum = info.data.get("username_min_length", 1)
        if value < minimum:
            raise ValueError("username_max_length must be >= username_min_length")
        return value

    def model_post_init(self, __context: object) -> None:
        """Create directories after initialization."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.log_dir.mkdir(parents=True, exist_ok=True)

    @property
    def telemetry_file(self) -> Path:
        return self.log_dir / "telemetry.jsonl"


def load_config() -> SimulatorConfig:
    """Load configuration from environment and .env file."""
    return SimulatorConfig()
