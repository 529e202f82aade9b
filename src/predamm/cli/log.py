"""Trade log subcommands: per-market stats and Parquet export."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone

import typer

from predamm.cli.common import echo_json
from predamm.storage.db import get_connection, init_schema
from predamm.storage.event_log import log_stats
from predamm.storage.export import export_events_to_parquet

app = typer.Typer(help="Trade log statistics and export")


@contextmanager
def _trade_log(ctx: typer.Context):
    conn = get_connection(ctx.obj["settings"].db_path)
    init_schema(conn)
    try:
        yield conn
    finally:
        conn.close()


def _fmt_ts(ts: int | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


@app.command("stats")
def stats(
    ctx: typer.Context,
    market: str | None = typer.Option(None, "--market", "-m", help="Only trades in this market"),
    as_json: bool = typer.Option(False, "--json", help="Print raw stats as JSON"),
) -> None:
    """Trade counts by kind, time range and volume per market."""
    with _trade_log(ctx) as conn:
        s = log_stats(conn, market_id=market)
    if as_json:
        echo_json(s)
        return
    typer.echo(f"Total trades: {s['total_events']}")
    if s["by_kind"]:
        typer.echo("  " + "  ".join(f"{kind}={count}" for kind, count in s["by_kind"].items()))
    typer.echo(f"First: {_fmt_ts(s['min_ts'])}")
    typer.echo(f"Last:  {_fmt_ts(s['max_ts'])}")
    if s["by_market"] and not market:
        typer.echo("Busiest markets:")
        for row in s["by_market"]:
            typer.echo(f"  {row['market_id']:<32} {row['count']:>6} trades  {row['volume']:>12.2f} volume")


@app.command("export")
def export(
    ctx: typer.Context,
    market: str | None = typer.Option(None, "--market", "-m", help="Only trades in this market"),
    output: str = typer.Option("trades.parquet", "--output", "-o", help="Parquet output path"),
) -> None:
    """Write the trade log to a Parquet file."""
    with _trade_log(ctx) as conn:
        count = export_events_to_parquet(conn, output, market_id=market)
    typer.echo(f"Exported {count} trades to {output}")
