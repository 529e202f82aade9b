"""DuckDB-backed balance service used by the CLI."""

from __future__ import annotations

import time
from threading import Lock

import duckdb
import structlog

from predamm.balance.base import BalanceService
from predamm.errors import BalanceServiceError, InsufficientFunds, ValidationError
from predamm.storage.db import init_schema

log = structlog.get_logger(__name__)


class DuckDBBalanceService(BalanceService):
    """Balances plus a reference-unique transaction table, one transaction per movement."""

    def __init__(
        self,
        conn: duckdb.DuckDBPyConnection,
        allow_overdraft: bool = False,
        owns_connection: bool = False,
    ) -> None:
        self.conn = conn
        self._owns_connection = owns_connection
        self.allow_overdraft = allow_overdraft
        self._lock = Lock()
        init_schema(conn)

    def _move(self, user_id: str, amount: float, reference: str, kind: str) -> None:
        if not amount >= 0:
            raise ValidationError(f"Amount must be non-negative, got {amount!r}")
        now_ms = int(time.time() * 1000)
        with self._lock:
            self.conn.begin()
            try:
                seen = self.conn.execute(
                    "SELECT 1 FROM balance_transactions WHERE reference = ?", [reference]
                ).fetchone()
                if seen:
                    self.conn.rollback()
                    return
                row = self.conn.execute("SELECT balance FROM balances WHERE user_id = ?", [user_id]).fetchone()
                current = float(row[0]) if row else 0.0
                if kind == "debit" and not self.allow_overdraft and current < amount:
                    raise InsufficientFunds(
                        f"User {user_id} has {current:.2f}, needs {amount:.2f}",
                        user_id=user_id,
                    )
                new_balance = current - amount if kind == "debit" else current + amount
                self.conn.execute(
                    """
                    INSERT INTO balances (user_id, balance, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT (user_id) DO UPDATE SET balance = excluded.balance, updated_at = excluded.updated_at
                    """,
                    [user_id, new_balance, now_ms],
                )
                self.conn.execute(
                    "INSERT INTO balance_transactions (reference, user_id, kind, amount, ts) VALUES (?, ?, ?, ?, ?)",
                    [reference, user_id, kind, amount, now_ms],
                )
                self.conn.commit()
            except InsufficientFunds:
                self.conn.rollback()
                raise
            except duckdb.Error as e:
                self.conn.rollback()
                log.error("balance_move_failed", user_id=user_id, kind=kind, reference=reference, error=str(e))
                raise BalanceServiceError(f"Balance {kind} failed for {user_id}: {e}") from e

    def deposit(self, user_id: str, amount: float, reference: str) -> None:
        self._move(user_id, amount, reference, "deposit")

    def debit(self, user_id: str, amount: float, reference: str) -> None:
        self._move(user_id, amount, reference, "debit")

    def credit(self, user_id: str, amount: float, reference: str) -> None:
        self._move(user_id, amount, reference, "credit")

    def balance(self, user_id: str) -> float:
        with self._lock:
            row = self.conn.execute("SELECT balance FROM balances WHERE user_id = ?", [user_id]).fetchone()
        return float(row[0]) if row else 0.0

    def close(self) -> None:
        if self._owns_connection:
            self.conn.close()
