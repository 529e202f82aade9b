"""Bet - a position bought from the market maker."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class BetStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    WON = "won"
    LOST = "lost"
    CASHED_OUT = "cashed_out"
    VOIDED = "voided"
    REFUNDED = "refunded"


# Bets still holding shares against the market.
OPEN_BET_STATUSES = frozenset({BetStatus.PENDING, BetStatus.ACTIVE})


class Bet(BaseModel):
    """Created only by a committed trade; changed only by cash-out or settlement."""

    model_config = ConfigDict(frozen=True)

    bet_id: str
    market_id: str
    outcome_id: str
    outcome_label: str = ""
    user_id: str
    amount: float = Field(..., gt=0)
    shares: float = Field(..., gt=0)
    probability_at_placement: float = Field(..., gt=0, lt=1)
    odds_at_placement: float  # American, display only
    potential_payout: float
    status: BetStatus = BetStatus.ACTIVE
    settled_amount: float | None = None
    profit_loss: float | None = None
    cashed_out_amount: float | None = None
    placed_at: int  # ms epoch
    settled_at: int | None = None
    updated_at: int | None = None

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_BET_STATUSES
