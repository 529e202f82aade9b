"""Bets subcommand: quote, place, cashout, list."""

from __future__ import annotations

import typer

from predamm.cli.common import echo_json, open_exchange

app = typer.Typer(help="Quotes, bets and cash-outs")


@app.command("quote")
def quote(
    ctx: typer.Context,
    market_id: str = typer.Argument(...),
    outcome_id: str = typer.Argument(...),
    amount: float = typer.Argument(..., help="Stake"),
) -> None:
    """Price a stake without placing it."""
    with open_exchange(ctx) as exchange:
        echo_json(exchange.get_quote(market_id, outcome_id, amount).model_dump(mode="json"))


@app.command("place")
def place(
    ctx: typer.Context,
    market_id: str = typer.Argument(...),
    outcome_id: str = typer.Argument(...),
    amount: float = typer.Argument(..., help="Stake"),
    user: str = typer.Option(..., "--user", "-u", help="User ID"),
    max_slippage: float | None = typer.Option(None, "--max-slippage", help="Reject above this relative price move"),
) -> None:
    """Place a bet."""
    with open_exchange(ctx) as exchange:
        bet = exchange.place_bet(market_id, outcome_id, amount, user, max_slippage=max_slippage)
        typer.echo(
            f"Placed {bet.bet_id}: {bet.amount:.2f} on {bet.outcome_label or bet.outcome_id} "
            f"for {bet.shares:.4f} shares at {bet.probability_at_placement:.2%}"
        )


@app.command("cashout")
def cashout(
    ctx: typer.Context,
    bet_id: str = typer.Argument(...),
    quote_only: bool = typer.Option(False, "--quote", help="Show the value without cashing out"),
) -> None:
    """Sell a bet back to the market."""
    with open_exchange(ctx) as exchange:
        if quote_only:
            typer.echo(f"Cash-out value: {exchange.get_cash_out_value(bet_id):.2f}")
            return
        result = exchange.cash_out(bet_id)
        typer.echo(f"Cashed out {bet_id} for {result.value:.2f} (P/L {result.bet.profit_loss:+.2f})")


@app.command("list")
def list_bets(
    ctx: typer.Context,
    market_id: str | None = typer.Option(None, "--market", "-m", help="Bets on a market"),
    user: str | None = typer.Option(None, "--user", "-u", help="Bets by a user"),
) -> None:
    """List bets for a market or a user."""
    if not market_id and not user:
        typer.echo("Provide --market or --user", err=True)
        raise typer.Exit(code=2)
    with open_exchange(ctx) as exchange:
        bets = exchange.list_bets(market_id) if market_id else exchange.list_user_bets(user)
        for b in bets:
            typer.echo(
                f"  {b.bet_id:<36}  {b.user_id:<12}  {b.outcome_id:<24}  {b.amount:>9.2f}  "
                f"{b.shares:>10.4f}  {b.status.value}"
            )
        typer.echo(f"Total: {len(bets)} bets")
