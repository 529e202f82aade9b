"""Versioned per-market state with single-writer serialization."""

from predamm.ledger.engine import MarketLedger, TradeResult, now_ms

__all__ = ["MarketLedger", "TradeResult", "now_ms"]
