"""DuckDB connection and schema init."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

SCHEMA_SQL = """
-- Sequences for auto-increment IDs and placement order
CREATE SEQUENCE IF NOT EXISTS trade_event_seq START 1;
CREATE SEQUENCE IF NOT EXISTS bet_seq START 1;
CREATE SEQUENCE IF NOT EXISTS balance_tx_seq START 1;

-- Market snapshots (latest version only, full model in payload)
CREATE TABLE IF NOT EXISTS markets (
    market_id       VARCHAR PRIMARY KEY,
    market_type     VARCHAR NOT NULL,
    status          VARCHAR NOT NULL,
    version         BIGINT NOT NULL,
    title           VARCHAR,
    payload         JSON NOT NULL,
    created_at      BIGINT,
    updated_at      BIGINT
);

-- Bets (latest state, seq preserves placement order across updates)
CREATE TABLE IF NOT EXISTS bets (
    bet_id          VARCHAR PRIMARY KEY,
    seq             BIGINT DEFAULT nextval('bet_seq'),
    market_id       VARCHAR NOT NULL,
    user_id         VARCHAR NOT NULL,
    outcome_id      VARCHAR NOT NULL,
    status          VARCHAR NOT NULL,
    placed_at       BIGINT NOT NULL,
    payload         JSON NOT NULL
);

-- Trade log (append-only, one row per committed share-vector change)
CREATE TABLE IF NOT EXISTS trade_events (
    id              BIGINT PRIMARY KEY DEFAULT nextval('trade_event_seq'),
    market_id       VARCHAR NOT NULL,
    kind            VARCHAR NOT NULL,
    outcome_id      VARCHAR NOT NULL,
    bet_id          VARCHAR,
    user_id         VARCHAR,
    delta           DOUBLE NOT NULL,
    cost            DOUBLE NOT NULL,
    version         BIGINT NOT NULL,
    price_before    DOUBLE NOT NULL,
    price_after     DOUBLE NOT NULL,
    ts              BIGINT NOT NULL
);

-- Balance service: current balance per user
CREATE TABLE IF NOT EXISTS balances (
    user_id         VARCHAR PRIMARY KEY,
    balance         DOUBLE NOT NULL,
    updated_at      BIGINT NOT NULL
);

-- Balance movements, reference makes debit/credit idempotent
CREATE TABLE IF NOT EXISTS balance_transactions (
    id              BIGINT PRIMARY KEY DEFAULT nextval('balance_tx_seq'),
    reference       VARCHAR NOT NULL UNIQUE,
    user_id         VARCHAR NOT NULL,
    kind            VARCHAR NOT NULL,
    amount          DOUBLE NOT NULL,
    ts              BIGINT NOT NULL
);
"""


def get_connection(db_path: str | Path, read_only: bool = False) -> DuckDBPyConnection:
    """Return a DuckDB connection. Caller must close or use as context manager.
    ``:memory:`` opens a private in-memory database."""
    if str(db_path) == ":memory:":
        return duckdb.connect(":memory:")
    path = Path(db_path)
    if not read_only:
        path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def init_schema(conn: DuckDBPyConnection) -> None:
    """Create tables and sequences if they do not exist."""
    for stmt in SCHEMA_SQL.split(";"):
        stmt = stmt.strip()
        if stmt:
            try:
                conn.execute(stmt)
            except duckdb.Error as e:
                if "already exists" not in str(e).lower():
                    raise
