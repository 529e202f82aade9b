"""Persistence: store protocol, in-memory and DuckDB implementations."""

from predamm.storage.base import MarketStore
from predamm.storage.duckdb_store import DuckDBMarketStore
from predamm.storage.memory import InMemoryMarketStore

__all__ = ["MarketStore", "InMemoryMarketStore", "DuckDBMarketStore"]
