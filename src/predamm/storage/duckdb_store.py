"""DuckDB-backed MarketStore with optimistic versioning."""

from __future__ import annotations

from pathlib import Path
from threading import Lock
from typing import Iterable

import duckdb
import structlog

from predamm.errors import BetNotFound, MarketNotFound, PersistenceError, VersionConflict
from predamm.models import Bet, BetStatus, Market, MarketStatus, TradeEvent
from predamm.storage import event_log
from predamm.storage import markets as market_rows
from predamm.storage.base import MarketStore
from predamm.storage.db import get_connection, init_schema

log = structlog.get_logger(__name__)


class DuckDBMarketStore(MarketStore):
    """One connection per store; calls are serialized because a DuckDB
    connection must not be used from several threads at once."""

    def __init__(self, conn: duckdb.DuckDBPyConnection, owns_connection: bool = False) -> None:
        self.conn = conn
        self._owns_connection = owns_connection
        self._lock = Lock()
        init_schema(conn)

    @classmethod
    def open(cls, db_path: str | Path) -> DuckDBMarketStore:
        return cls(get_connection(db_path), owns_connection=True)

    def get_market(self, market_id: str) -> Market:
        with self._lock:
            market = market_rows.load_market(self.conn, market_id)
        if market is None:
            raise MarketNotFound(f"Market not found: {market_id}", market_id=market_id)
        return market

    def list_markets(self, status: MarketStatus | None = None) -> list[Market]:
        with self._lock:
            return market_rows.list_markets(self.conn, status=status)

    def save(
        self,
        market: Market,
        expected_version: int | None,
        bets: Iterable[Bet] = (),
        events: Iterable[TradeEvent] = (),
    ) -> None:
        bets = list(bets)
        events = list(events)
        with self._lock:
            self.conn.begin()
            try:
                stored_version = market_rows.get_market_version(self.conn, market.market_id)
                if stored_version != expected_version:
                    raise VersionConflict(
                        f"Market {market.market_id} is at version {stored_version}, expected {expected_version}",
                        market_id=market.market_id,
                    )
                market_rows.upsert_market(self.conn, market)
                for bet in bets:
                    market_rows.upsert_bet(self.conn, bet)
                event_log.append_events(self.conn, events)
                self.conn.commit()
            except VersionConflict:
                self.conn.rollback()
                raise
            except duckdb.Error as e:
                self.conn.rollback()
                log.error("store_save_failed", market_id=market.market_id, error=str(e))
                raise PersistenceError(f"Failed to save market {market.market_id}: {e}") from e

    def get_bet(self, bet_id: str) -> Bet:
        with self._lock:
            bet = market_rows.load_bet(self.conn, bet_id)
        if bet is None:
            raise BetNotFound(f"Bet not found: {bet_id}", bet_id=bet_id)
        return bet

    def list_bets(self, market_id: str, statuses: Iterable[BetStatus] | None = None) -> list[Bet]:
        with self._lock:
            return market_rows.list_bets(self.conn, market_id, statuses=statuses)

    def list_user_bets(self, user_id: str) -> list[Bet]:
        with self._lock:
            return market_rows.list_user_bets(self.conn, user_id)

    def list_events(self, market_id: str | None = None) -> list[TradeEvent]:
        with self._lock:
            return event_log.list_events(self.conn, market_id=market_id)

    def close(self) -> None:
        if self._owns_connection:
            self.conn.close()
