"""Markets subcommand: create, list, show, open, lock."""

from __future__ import annotations

import json
from pathlib import Path

import typer

from predamm.cli.common import echo_json, open_exchange
from predamm.models import MarketStatus, MarketType
from predamm.pricing.odds import format_odds

app = typer.Typer(help="Market creation and lifecycle")


@app.command("create")
def create(
    ctx: typer.Context,
    market_type: MarketType = typer.Argument(..., help="Market type"),
    params: str | None = typer.Option(None, "--params", help="Params as a JSON object"),
    params_file: Path | None = typer.Option(None, "--file", "-f", help="Params JSON file"),
    open_now: bool = typer.Option(False, "--open", help="Open the market for betting right away"),
) -> None:
    """Create a market from type-specific params."""
    if params_file is not None:
        raw = json.loads(params_file.read_text())
    elif params:
        raw = json.loads(params)
    else:
        typer.echo("Provide --params or --file", err=True)
        raise typer.Exit(code=2)
    with open_exchange(ctx) as exchange:
        market = exchange.create_market(market_type, raw)
        if open_now:
            market = exchange.open_market(market.market_id)
        typer.echo(f"Created {market.market_id} ({market.status.value}) with {len(market.outcomes)} outcomes")


@app.command("list")
def list_markets(
    ctx: typer.Context,
    status: MarketStatus | None = typer.Option(None, "--status", "-s", help="Filter by status"),
) -> None:
    """List markets in the local store."""
    with open_exchange(ctx) as exchange:
        markets = exchange.list_markets(status)
        for m in markets:
            typer.echo(f"  {m.market_id:<40}  {m.status.value:<9}  {m.total_volume:>10.2f}  {m.title[:50]}")
        typer.echo(f"Total: {len(markets)} markets")


@app.command("show")
def show(
    ctx: typer.Context,
    market_id: str = typer.Argument(...),
    odds: str = typer.Option("american", "--odds", help="american | decimal | probability"),
    as_json: bool = typer.Option(False, "--json", help="Print the full snapshot as JSON"),
) -> None:
    """Show a market with current prices."""
    with open_exchange(ctx) as exchange:
        market = exchange.get_market(market_id)
        if as_json:
            echo_json(market.model_dump(mode="json"))
            return
        typer.echo(f"{market.title}  [{market.market_type.value}]  {market.status.value}  v{market.version}")
        typer.echo(f"b={market.liquidity:g}  bets {market.min_bet:g}-{market.max_bet:g}  volume {market.total_volume:.2f}")
        for outcome, p in zip(market.outcomes, market.prices()):
            typer.echo(
                f"  {outcome.outcome_id:<28}  {p:6.2%}  {format_odds(p, odds):>8}  "
                f"liability {outcome.issued_shares:10.2f}  {outcome.label}"
            )
        if market.winning_outcome_id:
            typer.echo(f"Winner: {market.winning_outcome_id}")


@app.command("open")
def open_market(ctx: typer.Context, market_id: str = typer.Argument(...)) -> None:
    """Open a pending market for betting."""
    with open_exchange(ctx) as exchange:
        market = exchange.open_market(market_id)
        typer.echo(f"{market.market_id} is {market.status.value}")


@app.command("lock")
def lock_market(ctx: typer.Context, market_id: str = typer.Argument(...)) -> None:
    """Stop new bets ahead of settlement."""
    with open_exchange(ctx) as exchange:
        market = exchange.lock_market(market_id)
        typer.echo(f"{market.market_id} is {market.status.value}")
