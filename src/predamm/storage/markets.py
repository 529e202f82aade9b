"""Market and bet persistence (DuckDB)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

from predamm.models import Bet, BetStatus, Market, MarketStatus

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection


def _load(model: Any, payload: Any) -> Any:
    if isinstance(payload, str):
        return model.model_validate_json(payload)
    return model.model_validate(payload)


def get_market_version(conn: DuckDBPyConnection, market_id: str) -> int | None:
    """Stored version for a market, or None if absent."""
    row = conn.execute("SELECT version FROM markets WHERE market_id = ?", [market_id]).fetchone()
    return int(row[0]) if row else None


def upsert_market(conn: DuckDBPyConnection, market: Market) -> None:
    """Insert or replace a market snapshot."""
    conn.execute(
        """
        INSERT INTO markets (market_id, market_type, status, version, title, payload, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT (market_id) DO UPDATE SET
            status = excluded.status,
            version = excluded.version,
            title = excluded.title,
            payload = excluded.payload,
            updated_at = excluded.updated_at
        """,
        [
            market.market_id,
            market.market_type.value,
            market.status.value,
            market.version,
            market.title,
            market.model_dump_json(),
            market.created_at,
            market.updated_at,
        ],
    )


def load_market(conn: DuckDBPyConnection, market_id: str) -> Market | None:
    row = conn.execute("SELECT payload FROM markets WHERE market_id = ?", [market_id]).fetchone()
    return _load(Market, row[0]) if row else None


def list_markets(conn: DuckDBPyConnection, status: MarketStatus | None = None) -> list[Market]:
    """List markets (optionally by status), oldest first."""
    if status is not None:
        rows = conn.execute(
            "SELECT payload FROM markets WHERE status = ? ORDER BY created_at, market_id",
            [status.value],
        ).fetchall()
    else:
        rows = conn.execute("SELECT payload FROM markets ORDER BY created_at, market_id").fetchall()
    return [_load(Market, r[0]) for r in rows]


def upsert_bet(conn: DuckDBPyConnection, bet: Bet) -> None:
    """Insert a bet or update its status/payload. Placement order (seq) is kept."""
    conn.execute(
        """
        INSERT INTO bets (bet_id, market_id, user_id, outcome_id, status, placed_at, payload)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT (bet_id) DO UPDATE SET
            status = excluded.status,
            payload = excluded.payload
        """,
        [
            bet.bet_id,
            bet.market_id,
            bet.user_id,
            bet.outcome_id,
            bet.status.value,
            bet.placed_at,
            bet.model_dump_json(),
        ],
    )


def load_bet(conn: DuckDBPyConnection, bet_id: str) -> Bet | None:
    row = conn.execute("SELECT payload FROM bets WHERE bet_id = ?", [bet_id]).fetchone()
    return _load(Bet, row[0]) if row else None


def list_bets(
    conn: DuckDBPyConnection,
    market_id: str,
    statuses: Iterable[BetStatus] | None = None,
) -> list[Bet]:
    """Bets for a market in placement order, optionally filtered by status."""
    rows = conn.execute(
        "SELECT payload FROM bets WHERE market_id = ? ORDER BY seq", [market_id]
    ).fetchall()
    bets = [_load(Bet, r[0]) for r in rows]
    if statuses is not None:
        wanted = set(statuses)
        bets = [b for b in bets if b.status in wanted]
    return bets


def list_user_bets(conn: DuckDBPyConnection, user_id: str) -> list[Bet]:
    rows = conn.execute("SELECT payload FROM bets WHERE user_id = ? ORDER BY seq", [user_id]).fetchall()
    return [_load(Bet, r[0]) for r in rows]

