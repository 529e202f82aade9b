"""Account subcommand: deposit, balance."""

from __future__ import annotations

import uuid

import typer

from predamm.cli.common import open_exchange

app = typer.Typer(help="User balances")


@app.command("deposit")
def deposit(
    ctx: typer.Context,
    user: str = typer.Argument(...),
    amount: float = typer.Argument(...),
    reference: str | None = typer.Option(None, "--reference", help="Idempotency reference"),
) -> None:
    """Credit funds to a user."""
    with open_exchange(ctx) as exchange:
        exchange.balances.deposit(user, amount, reference or f"deposit:{uuid.uuid4().hex}")
        typer.echo(f"{user}: {exchange.balances.balance(user):.2f}")


@app.command("balance")
def balance(ctx: typer.Context, user: str = typer.Argument(...)) -> None:
    """Show a user's balance."""
    with open_exchange(ctx) as exchange:
        typer.echo(f"{user}: {exchange.balances.balance(user):.2f}")
