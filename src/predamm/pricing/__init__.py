"""Pure LMSR pricing math and odds display helpers."""

from predamm.pricing.lmsr import (
    Converged,
    MaxIterationsExceeded,
    SolverResult,
    cash_out_value,
    cost,
    cost_to_buy,
    max_subsidy,
    price,
    prices,
    seed_quantities,
    shares_for_cost,
)
from predamm.pricing.odds import (
    american_odds_to_probability,
    decimal_odds_to_probability,
    format_odds,
    odds_movement,
    probability_to_american_odds,
    probability_to_decimal_odds,
)

__all__ = [
    "Converged",
    "MaxIterationsExceeded",
    "SolverResult",
    "cash_out_value",
    "cost",
    "cost_to_buy",
    "max_subsidy",
    "price",
    "prices",
    "seed_quantities",
    "shares_for_cost",
    "american_odds_to_probability",
    "decimal_odds_to_probability",
    "format_odds",
    "odds_movement",
    "probability_to_american_odds",
    "probability_to_decimal_odds",
]
