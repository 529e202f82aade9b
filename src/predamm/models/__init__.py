"""Canonical schema (Pydantic) - Market, Outcome, Bet and operation results."""

from predamm.models.bet import OPEN_BET_STATUSES, Bet, BetStatus
from predamm.models.market import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    Market,
    MarketStatus,
    MarketType,
    Outcome,
)
from predamm.models.results import CashOutResult, Quote, RefundResult, SettlementResult
from predamm.models.trade import TradeEvent

__all__ = [
    "Market",
    "MarketStatus",
    "MarketType",
    "Outcome",
    "ALLOWED_TRANSITIONS",
    "TERMINAL_STATUSES",
    "Bet",
    "BetStatus",
    "OPEN_BET_STATUSES",
    "Quote",
    "CashOutResult",
    "SettlementResult",
    "RefundResult",
    "TradeEvent",
]
