"""Balance service protocol - funds movement is delegated, never held by the engine."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BalanceService(ABC):
    """External balance ledger.

    ``reference`` identifies the business event (``bet:<id>``,
    ``payout:<id>``...).  A repeated call with a reference that already
    succeeded is a no-op, so callers can retry after a partial failure without
    double-moving funds.  Failures raise
    :class:`~predamm.errors.ExternalError` subclasses.
    """

    @abstractmethod
    def debit(self, user_id: str, amount: float, reference: str) -> None:
        ...

    @abstractmethod
    def credit(self, user_id: str, amount: float, reference: str) -> None:
        ...

    @abstractmethod
    def balance(self, user_id: str) -> float:
        ...
