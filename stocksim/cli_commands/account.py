"""Account and tutorial commands for the StockSim CLI."""

from __future__ import annotations

import typer

from stocksim.core.config import load_config
from stocksim.models import LoginResult

from .utils import call, format_money, open_simulator, run, setup_logging

account_app = typer.Typer(
    name="account",
    help="Registration, login and the funding tutorial",
)

TOKEN_OPTION = typer.Option(
    ...,
    "--token",
    envvar="STOCKSIM_TOKEN",
    help="Session token printed by register/login",
)


def _echo_login(result: LoginResult) -> None:
    typer.echo(f"User: {result.username} ({result.user_id})")
    typer.echo(f"Cash: {format_money(result.cash)}")
    if not result.tutorial_completed:
        typer.echo("Complete the tutorial to receive your starting cash.")
    typer.echo(f"Token: {result.token}")


@account_app.command()
def register(
    username: str = typer.Argument(..., help="Username (3-20 characters)"),
    password: str = typer.Option(
        ..., "--password", prompt=True, hide_input=True, confirmation_prompt=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Create a new account with zero cash."""
    config = load_config()
    setup_logging(config.log_dir, verbose)
    simulator = open_simulator(config)

    result = run(simulator.register_user(username, password))
    typer.secho("Account created.", fg=typer.colors.GREEN)
    _echo_login(result)


@account_app.command()
def login(
    username: str = typer.Argument(..., help="Username"),
    password: str = typer.Option(..., "--password", prompt=True, hide_input=True),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Log in and print a session token."""
    config = load_config()
    setup_logging(config.log_dir, verbose)
    simulator = open_simulator(config)

    _echo_login(run(simulator.login(username, password)))


@account_app.command()
def tutorial(
    token: str = TOKEN_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Show the current tutorial lesson."""
    config = load_config()
    setup_logging(config.log_dir, verbose)
    simulator = open_simulator(config)

    user_id = call(simulator.resolve_session, token)
    status = call(simulator.current_tutorial_lesson, user_id)
    if status.completed or status.lesson is None:
        typer.echo("Tutorial completed.")
        return

    lesson = status.lesson
    typer.echo(f"Lesson {(status.step or 0) + 1}/{status.total}: {lesson['title']}")
    typer.echo("")
    typer.echo(lesson["content"])
    typer.echo("")
    typer.echo(lesson["question"])
    for index, option in enumerate(lesson["options"]):
        typer.echo(f"  [{index}] {option}")
    typer.echo("")
    typer.echo("Submit with: stocksim answer <index>")


@account_app.command()
def answer(
    choice: int = typer.Argument(..., min=0, help="Index of the chosen option"),
    token: str = TOKEN_OPTION,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Answer the current tutorial lesson."""
    config = load_config()
    setup_logging(config.log_dir, verbose)
    simulator = open_simulator(config)

    result = run(simulator.authenticate_and_award(token, choice))
    if not result.correct:
        typer.secho(result.message, fg=typer.colors.YELLOW)
        raise typer.Exit(code=1)
    typer.secho(result.message or "Correct!", fg=typer.colors.GREEN)
    if result.completed and result.cash is not None:
        typer.echo(f"Cash: {format_money(result.cash)}")
