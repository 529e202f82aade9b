"""Odds display conversions.

Pure helpers for presenting LMSR prices as American, decimal or percentage
odds.  Nothing here feeds back into pricing: the ledger only ever stores
share vectors and prices.
"""

from __future__ import annotations

from typing import Final, Literal

#: American-odds magnitude floor; |odds| < 100 is not a representable price.
_MIN_ODDS_MAGNITUDE: Final[int] = 100

#: Price change below this is reported as "stable".
MOVEMENT_DEAD_BAND: Final[float] = 0.01

OddsStyle = Literal["american", "decimal", "probability"]


def _check_probability(probability: float) -> None:
    if not 0.0 < probability < 1.0:
        raise ValueError(f"Probability {probability!r} must lie strictly between 0 and 1.")


def probability_to_american_odds(probability: float) -> float:
    """Convert a probability to American odds.

    Favourites (p >= 0.5) map to negative odds, underdogs to positive::

        probability_to_american_odds(0.75) → -300.0
        probability_to_american_odds(0.20) → +400.0

    The result is not rounded so the mapping stays invertible; round for
    display only.
    """
    _check_probability(probability)
    # Clamp so rounding near 0.5 never yields |odds| < 100.
    if probability >= 0.5:
        return -max(100.0, 100.0 * probability / (1.0 - probability))
    return max(100.0, 100.0 * (1.0 - probability) / probability)


def american_odds_to_probability(odds: float) -> float:
    """Inverse of :func:`probability_to_american_odds`.

    Raises:
        ValueError: If ``|odds| < 100``.
    """
    if abs(odds) < _MIN_ODDS_MAGNITUDE:
        raise ValueError(f"Invalid American odds {odds!r}: magnitude must be ≥ 100.")
    if odds < 0:
        return abs(odds) / (abs(odds) + 100.0)
    return 100.0 / (odds + 100.0)


def probability_to_decimal_odds(probability: float) -> float:
    """Decimal (European) odds: total return per unit staked."""
    _check_probability(probability)
    return 1.0 / probability


def decimal_odds_to_probability(decimal_odds: float) -> float:
    if decimal_odds <= 1.0:
        raise ValueError(f"Decimal odds {decimal_odds!r} must be > 1.0.")
    return 1.0 / decimal_odds


def format_odds(probability: float, style: OddsStyle = "american") -> str:
    """Format a price for display: ``-150``, ``+240``, ``2.50`` or ``40.0%``."""
    if style == "american":
        american = round(probability_to_american_odds(probability))
        return f"+{american}" if american > 0 else f"{american}"
    if style == "decimal":
        return f"{probability_to_decimal_odds(probability):.2f}"
    if style == "probability":
        _check_probability(probability)
        return f"{probability * 100:.1f}%"
    raise ValueError(f"Unknown odds style: {style!r}")


def odds_movement(current: float, previous: float) -> Literal["up", "down", "stable"]:
    """Direction of a price move, ignoring changes inside the dead band."""
    diff = current - previous
    if abs(diff) < MOVEMENT_DEAD_BAND:
        return "stable"
    return "up" if diff > 0 else "down"
