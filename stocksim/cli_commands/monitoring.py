"""Monitoring commands for the StockSim CLI."""

from __future__ import annotations

import typer

from stocksim.core.config import load_config

from .utils import SUSPICIOUS_PREFIX, format_telemetry_record, setup_logging, tail_telemetry_records

monitoring_app = typer.Typer(
    name="monitoring",
    help="Suspicious activity and telemetry review",
)


@monitoring_app.command()
def activity(
    tail: int = typer.Option(
        20,
        "--tail",
        min=0,
        help="Number of most recent entries to display (0 = show all)",
    ),
    kind: str | None = typer.Option(
        None, "--kind", help="Only show one kind, e.g. RAPID_TRADING or FAILED_LOGIN"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Print suspicious-activity records collected in the telemetry file."""
    config = load_config()
    setup_logging(config.log_dir, verbose)

    telemetry_file = config.telemetry_file
    prefix = SUSPICIOUS_PREFIX + kind.strip().upper() if kind else SUSPICIOUS_PREFIX
    records = tail_telemetry_records(telemetry_file, tail, message_prefix=prefix)
    if not records:
        typer.echo(f"No suspicious activity recorded in {telemetry_file}")
        return
    for record in records:
        typer.echo(format_telemetry_record(record))
