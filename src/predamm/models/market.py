"""Market, Outcome - versioned immutable market snapshots."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from predamm.pricing import lmsr


class MarketStatus(str, Enum):
    PENDING = "pending"
    OPEN = "open"
    LOCKED = "locked"
    SETTLED = "settled"
    CANCELLED = "cancelled"
    VOIDED = "voided"


class MarketType(str, Enum):
    POOL_WINNER = "pool_winner"
    MATCHUP = "matchup"
    FUTURES = "futures"
    PROPOSITION = "proposition"
    HEAD_TO_HEAD = "head_to_head"


TERMINAL_STATUSES = frozenset({MarketStatus.SETTLED, MarketStatus.CANCELLED, MarketStatus.VOIDED})

# One-directional lifecycle; terminal statuses have no exits.
ALLOWED_TRANSITIONS: dict[MarketStatus, frozenset[MarketStatus]] = {
    MarketStatus.PENDING: frozenset({MarketStatus.OPEN, MarketStatus.CANCELLED, MarketStatus.VOIDED}),
    MarketStatus.OPEN: frozenset({MarketStatus.LOCKED, MarketStatus.SETTLED, MarketStatus.CANCELLED, MarketStatus.VOIDED}),
    MarketStatus.LOCKED: frozenset({MarketStatus.SETTLED, MarketStatus.CANCELLED, MarketStatus.VOIDED}),
    MarketStatus.SETTLED: frozenset(),
    MarketStatus.CANCELLED: frozenset(),
    MarketStatus.VOIDED: frozenset(),
}


class Outcome(BaseModel):
    """One mutually exclusive result of a market."""

    model_config = ConfigDict(frozen=True)

    outcome_id: str
    label: str
    description: str | None = None
    shares: float = 0.0  # q_i, including the seed
    initial_shares: float = 0.0  # q_i at creation (prior seed)
    volume: float = 0.0

    @property
    def issued_shares(self) -> float:
        """Shares held by bettors: the payout owed if this outcome wins."""
        return self.shares - self.initial_shares


class Market(BaseModel):
    """Canonical market snapshot. Never mutated; every change is a new version."""

    model_config = ConfigDict(frozen=True)

    market_id: str
    market_type: MarketType
    title: str = ""
    description: str = ""
    outcomes: tuple[Outcome, ...] = Field(default_factory=tuple)
    liquidity: float = Field(..., gt=0, description="LMSR liquidity parameter b")
    status: MarketStatus = MarketStatus.PENDING
    total_volume: float = 0.0
    opens_at: int | None = None  # ms epoch
    closes_at: int | None = None  # ms epoch
    min_bet: float = Field(1.0, gt=0)
    max_bet: float = Field(1000.0, gt=0)
    max_exposure: float = Field(10000.0, gt=0)
    cash_out_enabled: bool = True
    max_slippage: float | None = Field(None, gt=0)
    winning_outcome_id: str | None = None
    settlement_notes: str | None = None
    tags: tuple[str, ...] = ()
    featured: bool = False
    created_at: int | None = None
    updated_at: int | None = None
    settled_at: int | None = None
    version: int = 0
    extra: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_limits(self) -> Market:
        if self.max_bet < self.min_bet:
            raise ValueError(f"max_bet {self.max_bet} is below min_bet {self.min_bet}")
        ids = [o.outcome_id for o in self.outcomes]
        if len(ids) != len(set(ids)):
            raise ValueError("Outcome ids must be unique within a market")
        return self

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def share_vector(self) -> list[float]:
        return [o.shares for o in self.outcomes]

    def outcome_index(self, outcome_id: str) -> int | None:
        for i, o in enumerate(self.outcomes):
            if o.outcome_id == outcome_id:
                return i
        return None

    def prices(self) -> list[float]:
        return lmsr.prices(self.share_vector(), self.liquidity)

    def liabilities(self) -> list[float]:
        """Worst-case payout per outcome: issued shares if that outcome wins."""
        return [o.issued_shares for o in self.outcomes]

    def can_transition(self, to: MarketStatus) -> bool:
        return to in ALLOWED_TRANSITIONS[self.status]
