"""Trade log append and query - every committed share-vector change."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

from predamm.models import TradeEvent

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

_COLUMNS = [
    "market_id",
    "kind",
    "outcome_id",
    "bet_id",
    "user_id",
    "delta",
    "cost",
    "version",
    "price_before",
    "price_after",
    "ts",
]


def _row(event: TradeEvent) -> list[Any]:
    return [getattr(event, c) for c in _COLUMNS]


def append_events(conn: DuckDBPyConnection, events: Iterable[TradeEvent]) -> None:
    """Append trade events. Caller owns the transaction."""
    rows = [_row(e) for e in events]
    if not rows:
        return
    conn.executemany(
        f"INSERT INTO trade_events ({', '.join(_COLUMNS)}) VALUES ({', '.join('?' for _ in _COLUMNS)})",
        rows,
    )


def list_events(conn: DuckDBPyConnection, market_id: str | None = None) -> list[TradeEvent]:
    """Trade events in commit order, optionally for one market."""
    sql = f"SELECT {', '.join(_COLUMNS)} FROM trade_events"
    params: list[Any] = []
    if market_id:
        sql += " WHERE market_id = ?"
        params.append(market_id)
    rows = conn.execute(sql + " ORDER BY id ASC", params).fetchall()
    return [TradeEvent(**dict(zip(_COLUMNS, r))) for r in rows]


def log_stats(conn: DuckDBPyConnection, market_id: str | None = None) -> dict[str, Any]:
    """Trade log statistics: total count, ts range, counts by kind and volume by market.

    With ``market_id`` every figure is restricted to that market.
    """
    where, params = ("WHERE market_id = ?", [market_id]) if market_id else ("", [])
    total, min_ts, max_ts = conn.execute(
        f"SELECT COUNT(*), MIN(ts), MAX(ts) FROM trade_events {where}", params
    ).fetchone()
    by_kind = conn.execute(
        f"SELECT kind, COUNT(*) FROM trade_events {where} GROUP BY kind ORDER BY kind", params
    ).fetchall()
    by_market = conn.execute(
        f"""
        SELECT market_id, COUNT(*) AS cnt, SUM(ABS(cost)) AS volume
        FROM trade_events
        {where}
        GROUP BY market_id
        ORDER BY cnt DESC
        LIMIT 20
        """,
        params,
    ).fetchall()
    return {
        "total_events": total,
        "min_ts": min_ts,
        "max_ts": max_ts,
        "by_kind": {r[0]: r[1] for r in by_kind},
        "by_market": [{"market_id": r[0], "count": r[1], "volume": float(r[2] or 0.0)} for r in by_market],
    }
