"""Balance service boundary and bundled implementations."""

from predamm.balance.base import BalanceService
from predamm.balance.duckdb_ledger import DuckDBBalanceService
from predamm.balance.memory import InMemoryBalanceService

__all__ = ["BalanceService", "InMemoryBalanceService", "DuckDBBalanceService"]
