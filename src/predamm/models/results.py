"""Response DTOs for the exchange operations. JSON via model_dump(mode="json")."""

from __future__ import annotations

from pydantic import BaseModel, Field

from predamm.models.bet import Bet
from predamm.models.market import MarketStatus


class Quote(BaseModel):
    """Read-only price for spending ``amount`` on one outcome."""

    market_id: str
    outcome_id: str
    amount: float
    shares: float
    price_before: float
    price_after: float
    average_price: float
    potential_payout: float
    odds_before: float = Field(..., description="American odds before the trade")


class CashOutResult(BaseModel):
    bet: Bet
    value: float


class SettlementResult(BaseModel):
    market_id: str
    winning_outcome_id: str
    settled_bets: list[Bet]
    total_payout: float
    settled_at: int | None = None


class RefundResult(BaseModel):
    market_id: str
    status: MarketStatus
    refunds: list[Bet]
    total_refunded: float
