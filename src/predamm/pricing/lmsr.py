"""Logarithmic Market Scoring Rule (LMSR) math - the single source of pricing truth.

Every function here is **pure**: no I/O, no logging, no mutable state.
The ledger, bet processor and settlement engine import from this module and
never reimplement cost or price locally.

Notation
--------
* ``q``  share vector, one cumulative net share count per outcome
* ``b``  liquidity parameter (> 0); worst-case subsidy is ``b * ln(N)``
* ``C(q) = b * ln(sum_i exp(q_i / b))``  the cost function
* ``p_i(q) = exp(q_i / b) / sum_j exp(q_j / b)``  the price (softmax)

Numerics
--------
``cost`` uses the log-sum-exp trick (subtract ``max(q) / b`` before
exponentiating) so heavily traded markets never overflow.  ``cost_to_buy``
uses the closed form for buys::

    C(q + d*e_i) - C(q) = b * ln(1 + p_i * (exp(d / b) - 1))

evaluated with ``log1p``/``expm1`` and, once ``exp(d / b)`` would overflow, rewritten as
``d + b * ln(p_i + (1 - p_i) * exp(-d / b))``.  This is the same quantity as
the difference of two ``cost`` calls but does not lose precision to
cancellation when ``q`` is large.  Sells take the plain difference of two
``cost`` calls, which stays finite when ``p_i`` rounds to 1.

Run tests with::

    pytest tests/test_lmsr.py -v
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final, Sequence, Union

# ---------------------------------------------------------------------------
# Module-level constants
# ---------------------------------------------------------------------------

#: Bisection convergence tolerance, in shares.
DEFAULT_TOLERANCE: Final[float] = 1e-4

#: Hard cap on bisection iterations.
DEFAULT_MAX_ITERATIONS: Final[int] = 100

#: Hard cap on bracket doublings before the solver gives up.
_MAX_BRACKET_EXPANSIONS: Final[int] = 64

#: Factor applied to the initial bracket (and iteration cap) on a widened retry.
_WIDEN_FACTOR: Final[int] = 4

#: Above this ``d / b`` ratio ``expm1`` overflows; cost_to_buy switches to the large-d form.
_LARGE_STEP: Final[float] = 700.0


# ---------------------------------------------------------------------------
# Solver results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Converged:
    """Solver found ``shares`` within tolerance."""

    shares: float
    iterations: int


@dataclass(frozen=True)
class MaxIterationsExceeded:
    """Solver hit its iteration or bracket cap. Carries the last bracket."""

    iterations: int
    lo: float
    hi: float


SolverResult = Union[Converged, MaxIterationsExceeded]


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check(q: Sequence[float], b: float) -> None:
    if not b > 0 or not math.isfinite(b):
        raise ValueError(f"Liquidity parameter b must be a positive finite number, got {b!r}")
    if len(q) == 0:
        raise ValueError("Share vector must not be empty")


def _check_index(q: Sequence[float], i: int) -> None:
    if not 0 <= i < len(q):
        raise ValueError(f"Outcome index {i} out of range for {len(q)} outcomes")


# ---------------------------------------------------------------------------
# Cost and price
# ---------------------------------------------------------------------------


def cost(q: Sequence[float], b: float) -> float:
    """LMSR cost ``b * ln(sum exp(q_i / b))`` via log-sum-exp.

    This is the total amount paid to move the market from the all-zero share
    vector to ``q``.
    """
    _check(q, b)
    m = max(q)
    total = math.fsum(math.exp((qi - m) / b) for qi in q)
    return m + b * math.log(total)


def prices(q: Sequence[float], b: float) -> list[float]:
    """All outcome prices (softmax of ``q / b``). Sums to 1 within 1e-9."""
    _check(q, b)
    m = max(q)
    exps = [math.exp((qi - m) / b) for qi in q]
    total = math.fsum(exps)
    return [e / total for e in exps]


def price(q: Sequence[float], i: int, b: float) -> float:
    """Price of outcome ``i``; equals the marginal cost dC/dq_i."""
    _check_index(q, i)
    return prices(q, b)[i]


def cost_to_buy(q: Sequence[float], i: int, delta: float, b: float) -> float:
    """Cost of moving ``q_i`` by ``delta`` shares (negative ``delta`` sells).

    Strictly increasing in ``delta``; positive for ``delta > 0`` and negative
    for ``delta < 0``.
    """
    _check_index(q, i)
    if delta == 0:
        return 0.0
    if delta < 0:
        # 1 - p_i cancels to zero when outcome i dominates; difference the
        # log-sum-exp costs instead.
        moved = list(q)
        moved[i] += delta
        return cost(moved, b) - cost(q, b)
    p = price(q, i, b)
    x = delta / b
    if x <= _LARGE_STEP:
        return b * math.log1p(p * math.expm1(x))
    # Large buy: factor out exp(x) so nothing overflows.
    return delta + b * math.log1p((1.0 - p) * math.expm1(-x))


def cash_out_value(q: Sequence[float], i: int, user_shares: float, b: float) -> float:
    """Value of selling ``user_shares`` of outcome ``i`` back into the market.

    May be less than the amount originally paid if the price has moved against
    the position since purchase.
    """
    if user_shares < 0:
        raise ValueError(f"user_shares must be non-negative, got {user_shares!r}")
    return -cost_to_buy(q, i, -user_shares, b)


# ---------------------------------------------------------------------------
# Inverse: shares for a target cost
# ---------------------------------------------------------------------------


def shares_for_cost(
    q: Sequence[float],
    i: int,
    target_cost: float,
    b: float,
    *,
    tolerance: float = DEFAULT_TOLERANCE,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    widen: bool = False,
) -> SolverResult:
    """Solve ``cost_to_buy(q, i, d, b) == target_cost`` for ``d`` by bisection.

    Bracket
    -------
    For a buy (``target_cost > 0``) the root lies in
    ``[target_cost, target_cost - b * ln(p_i)]``: every share costs less than 1,
    and ``cost_to_buy(d) >= d + b * ln(p_i)``.  For a sell the root lies below
    ``target_cost`` and the lower end is found by doubling.  Either end is
    doubled outward (at most 64 times) if floating-point rounding leaves the
    bracket short.

    Args:
        q: Current share vector.
        i: Outcome index.
        target_cost: Amount to spend (positive) or receive (negative).
        b: Liquidity parameter.
        tolerance: Stop once the bracket is narrower than this many shares.
        max_iterations: Hard bisection cap.
        widen: Retry mode - start from a 4x wider bracket with a 4x larger
            iteration cap.

    Returns:
        ``Converged(shares, iterations)`` or ``MaxIterationsExceeded``.  Never
        an approximate value disguised as success.
    """
    _check(q, b)
    _check_index(q, i)
    if not math.isfinite(target_cost):
        raise ValueError(f"target_cost must be finite, got {target_cost!r}")
    if target_cost == 0:
        return Converged(shares=0.0, iterations=0)

    scale = _WIDEN_FACTOR if widen else 1
    max_iterations = max_iterations * scale

    def f(d: float) -> float:
        return cost_to_buy(q, i, d, b) - target_cost

    if target_cost > 0:
        p = price(q, i, b)
        lo = 0.0
        hi = (target_cost - b * math.log(p)) * scale if p > 0 else target_cost * 2 * scale
    else:
        lo = 2.0 * target_cost * scale
        hi = 0.0

    expansions = 0
    while f(hi) < 0:
        if expansions >= _MAX_BRACKET_EXPANSIONS:
            return MaxIterationsExceeded(iterations=0, lo=lo, hi=hi)
        lo, hi = hi, hi * 2
        expansions += 1
    while f(lo) > 0:
        if expansions >= _MAX_BRACKET_EXPANSIONS:
            return MaxIterationsExceeded(iterations=0, lo=lo, hi=hi)
        lo, hi = lo * 2, lo
        expansions += 1

    for iteration in range(1, max_iterations + 1):
        mid = (lo + hi) * 0.5
        if f(mid) < 0:
            lo = mid
        else:
            hi = mid
        if hi - lo < tolerance:
            return Converged(shares=(lo + hi) * 0.5, iterations=iteration)
    return MaxIterationsExceeded(iterations=max_iterations, lo=lo, hi=hi)


# ---------------------------------------------------------------------------
# Market-level helpers
# ---------------------------------------------------------------------------


def max_subsidy(b: float, n_outcomes: int) -> float:
    """Worst-case market-maker loss ``b * ln(N)`` for an unseeded market."""
    if n_outcomes < 1:
        raise ValueError("n_outcomes must be at least 1")
    return b * math.log(n_outcomes)


def seed_quantities(probabilities: Sequence[float], b: float) -> list[float]:
    """Share vector whose prices equal ``probabilities`` (normalized).

    The most likely outcome is anchored at 0 so every seed is <= 0.
    """
    if not b > 0:
        raise ValueError(f"Liquidity parameter b must be positive, got {b!r}")
    if not probabilities or any(not (p > 0) for p in probabilities):
        raise ValueError("Prior probabilities must all be positive")
    total = math.fsum(probabilities)
    normalized = [p / total for p in probabilities]
    top = max(normalized)
    return [b * math.log(p / top) for p in normalized]
