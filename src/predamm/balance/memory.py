"""In-process balance service for tests and embedded use."""

from __future__ import annotations

from threading import Lock

from predamm.balance.base import BalanceService
from predamm.errors import InsufficientFunds, ValidationError


class InMemoryBalanceService(BalanceService):
    """Per-user balances with idempotent references. ``allow_overdraft`` skips the funds check."""

    def __init__(self, balances: dict[str, float] | None = None, allow_overdraft: bool = False) -> None:
        self._balances: dict[str, float] = dict(balances or {})
        self._references: set[str] = set()
        self.allow_overdraft = allow_overdraft
        self.transactions: list[tuple[str, str, str, float]] = []  # (reference, user_id, kind, amount)
        self._lock = Lock()

    def _move(self, user_id: str, amount: float, reference: str, kind: str) -> None:
        if not amount >= 0:
            raise ValidationError(f"Amount must be non-negative, got {amount!r}")
        with self._lock:
            if reference in self._references:
                return
            current = self._balances.get(user_id, 0.0)
            signed = -amount if kind == "debit" else amount
            if kind == "debit" and not self.allow_overdraft and current < amount:
                raise InsufficientFunds(
                    f"User {user_id} has {current:.2f}, needs {amount:.2f}",
                    user_id=user_id,
                )
            self._balances[user_id] = current + signed
            self._references.add(reference)
            self.transactions.append((reference, user_id, kind, amount))

    def deposit(self, user_id: str, amount: float, reference: str) -> None:
        self._move(user_id, amount, reference, "deposit")

    def debit(self, user_id: str, amount: float, reference: str) -> None:
        self._move(user_id, amount, reference, "debit")

    def credit(self, user_id: str, amount: float, reference: str) -> None:
        self._move(user_id, amount, reference, "credit")

    def balance(self, user_id: str) -> float:
        with self._lock:
            return self._balances.get(user_id, 0.0)
