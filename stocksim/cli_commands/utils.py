"""Shared utility functions for CLI commands."""

from __future__ import annotations

import asyncio
import json
import sys
from collections import deque
from collections.abc import Coroutine
from decimal import Decimal
from pathlib import Path
from typing import Any, NoReturn, TypeVar

import typer
from loguru import logger

from stocksim.core.config import SimulatorConfig
from stocksim.errors import SimulatorError
from stocksim.service import TradingSimulator, build_simulator

T = TypeVar("T")

SUSPICIOUS_PREFIX = "Suspicious activity: "


def setup_logging(log_dir: Path, verbose: bool = False) -> None:
    """Configure loguru logging.

    Args:
        log_dir: Directory for log files
        verbose: Enable verbose debug logging
    """
    # Remove default handler
    logger.remove()

    # Console handler
    log_level = "DEBUG" if verbose else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan> - "
        "<level>{message}</level>",
        level=log_level,
    )

    # File handler
    logger.add(
        log_dir / "stocksim_{time}.log",
        rotation="1 day",
        retention="7 days",
        level="DEBUG",
    )


def open_simulator(config: SimulatorConfig) -> TradingSimulator:
    """Load the ledger from disk and wire the simulator for one CLI call."""
    try:
        return build_simulator(config)
    except (OSError, ValueError) as exc:
        fail(f"Could not load ledger from {config.data_dir}: {exc}")


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a simulator coroutine, turning simulator errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except SimulatorError as exc:
        fail(exc.reason)


def call(func: Any, *args: Any, **kwargs: Any) -> Any:
    """Synchronous counterpart of ``run`` for non-async operations."""
    try:
        return func(*args, **kwargs)
    except SimulatorError as exc:
        fail(exc.reason)


def fail(message: str) -> NoReturn:
    typer.secho(f"Error: {message}", err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def format_money(value: Decimal | None) -> str:
    if value is None:
        return "n/a"
    return f"${value:,.2f}"


def format_telemetry_record(record: dict[str, Any]) -> str:
    """Format a decoded telemetry record for display."""
    timestamp = record.get("timestamp", "")
    level = record.get("level", "")
    message = record.get("message", "")
    context = record.get("context")
    if context:
        context_blob = json.dumps(context, separators=(",", ":"), ensure_ascii=False)
        return f"{timestamp} {level}: {message} {context_blob}"
    return f"{timestamp} {level}: {message}"


def tail_telemetry_records(
    telemetry_file: Path, tail: int, *, message_prefix: str | None = None
) -> list[dict[str, Any]]:
    """Load the last N decodable telemetry records, optionally filtered by message."""
    if not telemetry_file.exists():
        return []
    records: deque[dict[str, Any]] = deque(maxlen=tail if tail > 0 else None)
    with telemetry_file.open("r", encoding="utf-8") as handle:
        for line in handle:
            payload = line.strip()
            if not payload:
                continue
            try:
                record = json.loads(payload)
            except json.JSONDecodeError:
                logger.debug("Skipping malformed telemetry line: {}", payload)
                continue
            if message_prefix and not str(record.get("message", "")).startswith(message_prefix):
                continue
            records.append(record)
    return list(records)
