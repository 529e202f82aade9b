"""Settle subcommand: run, cancel, void."""

from __future__ import annotations

import typer

from predamm.cli.common import open_exchange

app = typer.Typer(help="Settlement, cancellation and void")


@app.command("run")
def run(
    ctx: typer.Context,
    market_id: str = typer.Argument(...),
    winning_outcome_id: str = typer.Argument(..., help="Resolved outcome"),
) -> None:
    """Settle a market on its winning outcome and pay out."""
    with open_exchange(ctx) as exchange:
        result = exchange.settle_market(market_id, winning_outcome_id)
        won = sum(1 for b in result.settled_bets if b.status.value == "won")
        typer.echo(
            f"Settled {market_id} on {result.winning_outcome_id}: "
            f"{won}/{len(result.settled_bets)} bets won, paid {result.total_payout:.2f}"
        )


@app.command("cancel")
def cancel(
    ctx: typer.Context,
    market_id: str = typer.Argument(...),
    reason: str = typer.Option("", "--reason", "-r"),
) -> None:
    """Cancel a market and refund every open bet."""
    with open_exchange(ctx) as exchange:
        result = exchange.cancel_market(market_id, reason)
        typer.echo(f"Cancelled {market_id}: refunded {len(result.refunds)} bets, {result.total_refunded:.2f}")


@app.command("void")
def void(
    ctx: typer.Context,
    market_id: str = typer.Argument(...),
    reason: str = typer.Option("", "--reason", "-r"),
) -> None:
    """Void a market and refund every open bet."""
    with open_exchange(ctx) as exchange:
        result = exchange.void_market(market_id, reason)
        typer.echo(f"Voided {market_id}: refunded {len(result.refunds)} bets, {result.total_refunded:.2f}")
