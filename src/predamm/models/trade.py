"""TradeEvent - one committed ledger mutation, as written to the trade log."""

from pydantic import BaseModel, Field


class TradeEvent(BaseModel):
    """Committed trade (buy or cash-out sell) against a market's share vector."""

    market_id: str
    kind: str = Field(..., pattern="^(buy|sell|compensate)$")
    outcome_id: str
    delta: float  # shares; negative for sells
    cost: float  # amount paid into the market; negative for sells
    version: int  # market version after the trade
    bet_id: str | None = None
    user_id: str | None = None
    price_before: float = Field(..., ge=0, le=1)
    price_after: float = Field(..., ge=0, le=1)
    ts: int  # ms epoch
