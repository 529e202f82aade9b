"""Error taxonomy for the market maker.

Five families, each with a machine-readable ``code`` for DTO/CLI output:
ValidationError, StateError, NumericalError, ConcurrencyError, ExternalError.
Only NumericalError (one widened retry) and ConcurrencyError (bounded re-quote)
are retried by the engine.
"""

from __future__ import annotations

from typing import Any


class PredAmmError(Exception):
    """Base for all engine errors."""

    code: str = "error"
    retryable: bool = False

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Consistent error shape: { detail, code }."""
        return {"detail": self.message, "code": self.code, **self.context}


# --- families ---
class ValidationError(PredAmmError):
    code = "validation_error"


class StateError(PredAmmError):
    code = "state_error"


class NumericalError(PredAmmError):
    code = "numerical_error"
    retryable = True


class ConcurrencyError(PredAmmError):
    code = "concurrency_error"
    retryable = True


class ExternalError(PredAmmError):
    code = "external_error"


# --- validation ---
class InvalidOutcome(ValidationError):
    code = "invalid_outcome"


class BetOutOfRange(ValidationError):
    code = "bet_out_of_range"


class ExposureExceeded(ValidationError):
    code = "exposure_exceeded"


class SlippageExceeded(ValidationError):
    code = "slippage_exceeded"


class MarketNotFound(ValidationError):
    code = "market_not_found"


class BetNotFound(ValidationError):
    code = "bet_not_found"


# --- state ---
class MarketNotOpen(StateError):
    code = "market_not_open"


class MarketClosed(StateError):
    code = "market_closed"


class NotCashable(StateError):
    code = "not_cashable"


class AlreadySettled(StateError):
    code = "already_settled"


class MarketNotLocked(StateError):
    code = "market_not_locked"


class InvalidTransition(StateError):
    code = "invalid_transition"


# --- numerical ---
class SolverDidNotConverge(NumericalError):
    code = "solver_did_not_converge"


# --- concurrency ---
class VersionConflict(ConcurrencyError):
    code = "version_conflict"


class ReentrantTrade(ConcurrencyError):
    code = "reentrant_trade"


# --- external ---
class InsufficientFunds(ExternalError):
    code = "insufficient_funds"


class BalanceServiceError(ExternalError):
    code = "balance_service_error"


class PersistenceError(ExternalError):
    code = "persistence_error"
