"""CLI entry point for StockSim."""

import typer

from stocksim.cli_commands.account import account_app
from stocksim.cli_commands.monitoring import monitoring_app
from stocksim.cli_commands.trading import trading_app

app = typer.Typer(
    name="stocksim",
    help="StockSim - practice stock trading with simulated cash",
)

# Add subcommand groups (namespaces)
app.add_typer(account_app, name="account")
app.add_typer(trading_app, name="trading")
app.add_typer(monitoring_app, name="monitoring")


def _register_root_aliases(source_app: typer.Typer) -> None:
    """Expose every command of ``source_app`` at the root level as well."""

    for cmd in source_app.registered_commands:
        callback = cmd.callback
        if callback is None:
            continue
        command_name = cmd.name or callback.__name__.replace("_", "-")
        decorator = app.command(  # type: ignore[misc]
            name=command_name,
            help=cmd.help,
            short_help=cmd.short_help,
            hidden=cmd.hidden,
        )
        decorator(callback)


_register_root_aliases(account_app)
_register_root_aliases(trading_app)
_register_root_aliases(monitoring_app)


if __name__ == "__main__":
    app()
