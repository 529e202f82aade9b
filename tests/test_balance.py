"""In-memory balance service."""

import pytest

from predamm.balance import InMemoryBalanceService
from predamm.errors import InsufficientFunds, ValidationError


def test_references_make_moves_idempotent():
    svc = InMemoryBalanceService({"u": 50.0})
    svc.credit("u", 25.0, "settle:b1")
    svc.credit("u", 25.0, "settle:b1")
    assert svc.balance("u") == 75.0
    assert len(svc.transactions) == 1


def test_debit_checks_funds_unless_overdraft_allowed():
    svc = InMemoryBalanceService({"u": 10.0})
    with pytest.raises(InsufficientFunds) as exc:
        svc.debit("u", 11.0, "bet:1")
    assert exc.value.code == "insufficient_funds"
    assert exc.value.to_dict()["user_id"] == "u"
    assert svc.balance("u") == 10.0

    loose = InMemoryBalanceService(allow_overdraft=True)
    loose.debit("u", 11.0, "bet:1")
    assert loose.balance("u") == -11.0


def test_negative_amount_rejected():
    with pytest.raises(ValidationError):
        InMemoryBalanceService().credit("u", -1.0, "x")
