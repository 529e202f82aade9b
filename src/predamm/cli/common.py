"""Shared CLI helpers: exchange lifetime and error output."""

from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Iterator

import typer

from predamm.errors import PredAmmError
from predamm.exchange import Exchange


@contextmanager
def open_exchange(ctx: typer.Context) -> Iterator[Exchange]:
    """DuckDB-backed exchange for one command. Engine errors exit with code 1."""
    exchange = Exchange.from_settings(ctx.obj["settings"])
    try:
        yield exchange
    except PredAmmError as e:
        typer.echo(f"Error [{e.code}]: {e.message}", err=True)
        raise typer.Exit(code=1) from e
    finally:
        exchange.close()


def echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))
