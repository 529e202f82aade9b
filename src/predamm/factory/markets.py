"""Market factory - builds pending markets for each supported market type."""

from __future__ import annotations

import time
from typing import Any, Callable

import pydantic
import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from predamm.errors import ValidationError
from predamm.models import Market, MarketType, Outcome
from predamm.pricing import lmsr
from predamm.pricing.odds import american_odds_to_probability

log = structlog.get_logger(__name__)

_MINUTE_MS = 60 * 1000

# Per-type limits; [markets.<type>] in config and call params override these.
MARKET_DEFAULTS: dict[MarketType, dict[str, Any]] = {
    MarketType.POOL_WINNER: {"liquidity": 100.0, "min_bet": 1.0, "max_bet": 1000.0, "max_exposure": 10000.0},
    MarketType.MATCHUP: {"liquidity": 100.0, "min_bet": 1.0, "max_bet": 500.0, "max_exposure": 5000.0},
    MarketType.FUTURES: {
        "liquidity": 500.0,
        "min_bet": 1.0,
        "max_bet": 1000.0,
        "max_exposure": 50000.0,
        "featured": True,
    },
    MarketType.PROPOSITION: {"liquidity": 100.0, "min_bet": 1.0, "max_bet": 500.0, "max_exposure": 5000.0},
    MarketType.HEAD_TO_HEAD: {"liquidity": 50.0, "min_bet": 1.0, "max_bet": 200.0, "max_exposure": 2000.0},
}

# Betting closes this long before the scheduled start.
CLOSE_BEFORE_START_MS: dict[MarketType, int] = {
    MarketType.MATCHUP: 5 * _MINUTE_MS,
    MarketType.FUTURES: 60 * _MINUTE_MS,
    MarketType.PROPOSITION: 0,
    MarketType.HEAD_TO_HEAD: 30 * _MINUTE_MS,
}

_OVERRIDABLE = ("liquidity", "min_bet", "max_bet", "max_exposure", "cash_out_enabled", "max_slippage", "featured")


# --- params ---
class Competitor(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    seed: int | None = None
    odds: float | None = None  # American; futures priors only

    @field_validator("odds")
    @classmethod
    def _american_odds(cls, v: float | None) -> float | None:
        if v is not None and abs(v) < 100:
            raise ValueError(f"American odds must be <= -100 or >= +100, got {v}")
        return v

    @property
    def label(self) -> str:
        return f"({self.seed}) {self.name}" if self.seed is not None else self.name


class MarketParams(BaseModel):
    """Fields shared by every market type."""

    model_config = ConfigDict(extra="forbid")

    market_id: str | None = None
    title: str | None = None
    description: str = ""
    starts_at: int | None = None  # ms epoch
    opens_at: int | None = None
    closes_at: int | None = None
    liquidity: float | None = Field(None, gt=0)
    min_bet: float | None = Field(None, gt=0)
    max_bet: float | None = Field(None, gt=0)
    max_exposure: float | None = Field(None, gt=0)
    cash_out_enabled: bool | None = None
    max_slippage: float | None = Field(None, gt=0)
    featured: bool | None = None
    tags: list[str] = Field(default_factory=list)


class PoolWinnerParams(MarketParams):
    pool_id: str
    participants: list[Competitor] = Field(..., min_length=2)


class MatchupParams(MarketParams):
    matchup_id: str
    team1: Competitor
    team2: Competitor
    team1_win_probability: float | None = Field(None, gt=0, lt=1)


class FuturesParams(MarketParams):
    tournament_id: str
    teams: list[Competitor] = Field(..., min_length=2)


class PropositionParams(MarketParams):
    prop_id: str
    subject: str
    line: float
    over_probability: float | None = Field(None, gt=0, lt=1)


class HeadToHeadParams(MarketParams):
    matchup_id: str
    competitor1: Competitor
    competitor2: Competitor
    tie_probability: float = Field(0.1, gt=0, lt=1)


PARAMS_BY_TYPE: dict[MarketType, type[MarketParams]] = {
    MarketType.POOL_WINNER: PoolWinnerParams,
    MarketType.MATCHUP: MatchupParams,
    MarketType.FUTURES: FuturesParams,
    MarketType.PROPOSITION: PropositionParams,
    MarketType.HEAD_TO_HEAD: HeadToHeadParams,
}


def _format_line(line: float) -> str:
    return f"{line:g}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class MarketFactory:
    """Builds validated, pending markets. Nothing is persisted here."""

    def __init__(
        self,
        overrides: dict[str, dict[str, Any]] | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.overrides = overrides or {}
        self.clock = clock

    def parse_params(self, market_type: MarketType | str, params: dict[str, Any] | MarketParams) -> MarketParams:
        try:
            market_type = MarketType(market_type)
        except ValueError:
            raise ValidationError(f"Unknown market type: {market_type}", market_type=str(market_type)) from None
        model = PARAMS_BY_TYPE[market_type]
        if isinstance(params, model):
            return params
        if isinstance(params, MarketParams):
            params = params.model_dump(exclude_unset=True)
        try:
            return model.model_validate(params)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid {market_type.value} params: {e}", market_type=market_type.value) from e

    def create(self, market_type: MarketType | str, params: dict[str, Any] | MarketParams) -> Market:
        parsed = self.parse_params(market_type, params)
        market_type = MarketType(market_type)
        builder = getattr(self, f"_build_{market_type.value}")
        market_id, title, outcomes, priors, tags = builder(parsed)

        limits = dict(MARKET_DEFAULTS[market_type])
        limits.update({k: v for k, v in self.overrides.get(market_type.value, {}).items() if k in _OVERRIDABLE})
        limits.update({k: getattr(parsed, k) for k in _OVERRIDABLE if getattr(parsed, k) is not None})
        b = float(limits["liquidity"])

        if priors is not None:
            seeds = lmsr.seed_quantities(priors, b)
            outcomes = [o.model_copy(update={"shares": s, "initial_shares": s}) for o, s in zip(outcomes, seeds)]

        closes_at = parsed.closes_at
        if closes_at is None and parsed.starts_at is not None and market_type in CLOSE_BEFORE_START_MS:
            closes_at = parsed.starts_at - CLOSE_BEFORE_START_MS[market_type]

        now = self.clock()
        try:
            market = Market(
                market_id=parsed.market_id or market_id,
                market_type=market_type,
                title=parsed.title or title,
                description=parsed.description,
                outcomes=tuple(outcomes),
                liquidity=b,
                opens_at=parsed.opens_at,
                closes_at=closes_at,
                min_bet=limits["min_bet"],
                max_bet=limits["max_bet"],
                max_exposure=limits["max_exposure"],
                cash_out_enabled=limits.get("cash_out_enabled", True),
                max_slippage=limits.get("max_slippage"),
                featured=limits.get("featured", False),
                tags=tuple(dict.fromkeys([*tags, *parsed.tags])),
                created_at=now,
                updated_at=now,
            )
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid market: {e}", market_type=market_type.value) from e
        log.debug("market_built", market_id=market.market_id, market_type=market_type.value, outcomes=len(outcomes))
        return market

    # --- builders: (market_id, title, outcomes, priors or None, tags) ---
    def _build_pool_winner(self, p: PoolWinnerParams):
        outcomes = [Outcome(outcome_id=f"outcome_{c.id}", label=c.label) for c in p.participants]
        return f"pool_winner_{p.pool_id}", f"Pool {p.pool_id} winner", outcomes, None, ["pool"]

    def _build_matchup(self, p: MatchupParams):
        outcomes = [
            Outcome(outcome_id=f"outcome_{p.team1.id}", label=p.team1.label),
            Outcome(outcome_id=f"outcome_{p.team2.id}", label=p.team2.label),
        ]
        priors = None
        if p.team1_win_probability is not None:
            priors = [p.team1_win_probability, 1.0 - p.team1_win_probability]
        title = f"{p.team1.label} vs {p.team2.label}"
        return f"matchup_winner_{p.matchup_id}", title, outcomes, priors, ["matchup"]

    def _build_futures(self, p: FuturesParams):
        outcomes = [Outcome(outcome_id=f"outcome_{t.id}", label=t.label) for t in p.teams]
        priors = None
        known = [american_odds_to_probability(t.odds) for t in p.teams if t.odds is not None]
        if known:
            # Teams without a line get the average implied probability of the rest.
            fallback = sum(known) / len(known)
            priors = [
                american_odds_to_probability(t.odds) if t.odds is not None else fallback for t in p.teams
            ]
        return (
            f"futures_champion_{p.tournament_id}",
            f"Tournament {p.tournament_id} champion",
            outcomes,
            priors,
            ["futures", "champion"],
        )

    def _build_proposition(self, p: PropositionParams):
        line = _format_line(p.line)
        outcomes = [
            Outcome(outcome_id="under", label=f"Under {line}"),
            Outcome(outcome_id="over", label=f"Over {line}"),
        ]
        priors = None
        if p.over_probability is not None:
            priors = [1.0 - p.over_probability, p.over_probability]
        return f"prop_{p.prop_id}", f"{p.subject}: over/under {line}", outcomes, priors, ["prop"]

    def _build_head_to_head(self, p: HeadToHeadParams):
        outcomes = [
            Outcome(outcome_id=f"outcome_{p.competitor1.id}", label=p.competitor1.label),
            Outcome(outcome_id=f"outcome_{p.competitor2.id}", label=p.competitor2.label),
            Outcome(outcome_id="outcome_tie", label="Tie"),
        ]
        priors = [0.5, 0.5, p.tie_probability]
        title = f"{p.competitor1.label} vs {p.competitor2.label}"
        return f"h2h_{p.matchup_id}", title, outcomes, priors, ["h2h"]
