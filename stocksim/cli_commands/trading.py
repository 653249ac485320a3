"""Trading and market data commands for the StockSim CLI."""

from __future__ import annotations

from datetime import UTC, datetime

import typer
from rich.console import Console
from rich.table import Table

from stocksim.core.config import load_config
from stocksim.core.constants import DEFAULT_SERIES_INTERVAL, DEFAULT_SERIES_RANGE
from stocksim.models import TradeResult

from .account import TOKEN_OPTION
from .utils import call, format_money, open_simulator, run, setup_logging

trading_app = typer.Typer(
    name="trading",
    help="Portfolio, trades and market data",
)


def _echo_trade(verb: str, result: TradeResult) -> None:
    record = result.transaction
    typer.secho(
        f"{verb} {record.quantity} {record.symbol} @ {format_money(record.price)} "
        f"(total {format_money(record.notional)})",
        fg=typer.colors.GREEN,
    )
    typer.echo(f"Cash: {format_money(result.cash)}")


@trading_app.command()
def portfolio(
    token: str = TOKEN_OPTION,
    value: bool = typer.Option(
        False, "--value", help="Mark holdings to market and show unrealized P&L"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Show cash and holdings."""
    config = load_config()
    setup_logging(config.log_dir, verbose)
    simulator = open_simulator(config)
    user_id = call(simulator.resolve_session, token)
    console = Console()

    if not value:
        view = call(simulator.get_portfolio, user_id)
        typer.echo(f"Cash: {format_money(view.cash)}")
        if not view.portfolio:
            typer.echo("No holdings.")
            return
        table = Table(title=f"Portfolio: {view.username}")
        table.add_column("Symbol", style="cyan")
        table.add_column("Qty", justify="right")
        table.add_column("Avg Price", justify="right")
        for symbol, holding in sorted(view.portfolio.items()):
            table.add_row(symbol, str(holding.quantity), format_money(holding.avg_price))
        console.print(table)
        return

    valuation = run(simulator.get_portfolio_valuation(user_id))
    table = Table(title=f"Portfolio: {valuation.username}")
    table.add_column("Symbol", style="cyan")
    table.add_column("Qty", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("Last", justify="right")
    table.add_column("P&L", justify="right")
    for holding in valuation.holdings:
        pnl = holding.unrealized_pnl
        style = "green" if pnl is not None and pnl >= 0 else "red"
        pnl_text = "n/a"
        if pnl is not None and holding.unrealized_pnl_percent is not None:
            pnl_text = f"{format_money(pnl)} ({holding.unrealized_pnl_percent:.2f}%)"
        table.add_row(
            holding.symbol,
            str(holding.quantity),
            format_money(holding.avg_price),
            format_money(holding.current_price),
            f"[{style}]{pnl_text}[/{style}]",
        )
    console.print(table)
    typer.echo(f"Cash: {format_money(valuation.cash)}")
    typer.echo(f"Holdings value: {format_money(valuation.portfolio_value)}")
    typer.echo(f"Total value: {format_money(valuation.total_value)}")


@trading_app.command()
def buy(
    symbol: str = typer.Argument(..., help="Ticker symbol"),
    quantity: int = typer.Argument(..., help="Whole number of shares"),
    token: str = TOKEN_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Buy shares at the current market price."""
    config = load_config()
    setup_logging(config.log_dir, verbose)
    simulator = open_simulator(config)
    user_id = call(simulator.resolve_session, token)

    _echo_trade("Bought", run(simulator.buy(user_id, symbol, quantity)))


@trading_app.command()
def sell(
    symbol: str = typer.Argument(..., help="Ticker symbol"),
    quantity: int = typer.Argument(..., help="Whole number of shares"),
    token: str = TOKEN_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Sell held shares at the current market price."""
    config = load_config()
    setup_logging(config.log_dir, verbose)
    simulator = open_simulator(config)
    user_id = call(simulator.resolve_session, token)

    _echo_trade("Sold", run(simulator.sell(user_id, symbol, quantity)))


@trading_app.command()
def history(
    token: str = TOKEN_OPTION,
    limit: int = typer.Option(100, "--limit", min=1, help="Maximum entries to display"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """List the most recent transactions."""
    config = load_config()
    setup_logging(config.log_dir, verbose)
    simulator = open_simulator(config)
    user_id = call(simulator.resolve_session, token)

    records = simulator.get_transaction_history(user_id, limit)
    if not records:
        typer.echo("No transactions yet.")
        return
    table = Table(title="Transactions")
    table.add_column("Time (UTC)")
    table.add_column("Side")
    table.add_column("Symbol", style="cyan")
    table.add_column("Qty", justify="right")
    table.add_column("Price", justify="right")
    for record in records:
        when = datetime.fromtimestamp(record.timestamp / 1000, tz=UTC)
        table.add_row(
            when.strftime("%Y-%m-%d %H:%M:%S"),
            record.type.value,
            record.symbol,
            str(record.quantity),
            format_money(record.price),
        )
    Console().print(table)


@trading_app.command()
def leaderboard(
    limit: int = typer.Option(100, "--limit", min=1, help="Maximum entries to display"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Rank users by cash plus holdings at current prices."""
    config = load_config()
    setup_logging(config.log_dir, verbose)
    simulator = open_simulator(config)

    entries = run(simulator.get_leaderboard(limit))
    if not entries:
        typer.echo("No users yet.")
        return
    table = Table(title="Leaderboard")
    table.add_column("#", justify="right")
    table.add_column("User", style="cyan")
    table.add_column("Total", justify="right")
    table.add_column("Cash", justify="right")
    for rank, entry in enumerate(entries, start=1):
        table.add_row(
            str(rank), entry.username, format_money(entry.total_value), format_money(entry.cash)
        )
    Console().print(table)


@trading_app.command()
def quote(
    symbol: str = typer.Argument(..., help="Ticker symbol"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Print the latest price for a symbol."""
    config = load_config()
    setup_logging(config.log_dir, verbose)
    simulator = open_simulator(config)

    price = run(simulator.get_quote(symbol))
    typer.echo(f"{symbol.strip().upper()}: {format_money(price)}")


@trading_app.command()
def chart(
    symbol: str = typer.Argument(..., help="Ticker symbol"),
    period: str = typer.Option(DEFAULT_SERIES_RANGE, "--period", help="History period"),
    interval: str = typer.Option(DEFAULT_SERIES_INTERVAL, "--interval", help="Bar interval"),
    bars: int = typer.Option(10, "--bars", min=1, help="Most recent bars to display"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Show the most recent OHLC bars for a symbol."""
    config = load_config()
    setup_logging(config.log_dir, verbose)
    simulator = open_simulator(config)

    series = run(simulator.get_chart(symbol, period, interval))
    table = Table(title=f"{series.symbol} ({period}, {interval})")
    table.add_column("Time (UTC)")
    for column in ("Open", "High", "Low", "Close"):
        table.add_column(column, justify="right")
    for candle in series.candles[-bars:]:
        when = datetime.fromtimestamp(candle.x / 1000, tz=UTC)
        table.add_row(
            when.strftime("%m-%d %H:%M"),
            f"{candle.o:.2f}",
            f"{candle.h:.2f}",
            f"{candle.l:.2f}",
            f"{candle.c:.2f}",
        )
    Console().print(table)
    typer.echo(f"Current price: {format_money(series.current_price)}")
