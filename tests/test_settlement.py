"""Settlement, cancellation and void."""

import pytest

from conftest import binary_market
from predamm.balance import InMemoryBalanceService
from predamm.config import Settings
from predamm.errors import (
    AlreadySettled,
    BalanceServiceError,
    InvalidOutcome,
    MarketNotLocked,
    StateError,
)
from predamm.exchange import Exchange
from predamm.models import BetStatus, MarketStatus
from predamm.storage import InMemoryMarketStore


def test_settle_pays_winners_their_shares(exchange, open_market, balances):
    a = exchange.place_bet("m1", "A", 50.0, "alice")
    b = exchange.place_bet("m1", "B", 30.0, "bob")
    exchange.lock_market("m1")
    result = exchange.settle_market("m1", "A")

    assert result.winning_outcome_id == "A"
    by_id = {bet.bet_id: bet for bet in result.settled_bets}
    assert by_id[a.bet_id].status == BetStatus.WON
    assert by_id[a.bet_id].settled_amount == pytest.approx(a.shares)
    assert by_id[a.bet_id].profit_loss == pytest.approx(a.shares - 50.0)
    assert by_id[b.bet_id].status == BetStatus.LOST
    assert by_id[b.bet_id].settled_amount == 0.0
    assert by_id[b.bet_id].profit_loss == pytest.approx(-30.0)
    assert result.total_payout == pytest.approx(a.shares)

    assert balances.balance("alice") == pytest.approx(10_000.0 - 50.0 + a.shares)
    assert balances.balance("bob") == pytest.approx(10_000.0 - 30.0)
    market = exchange.get_market("m1")
    assert market.status == MarketStatus.SETTLED
    assert market.winning_outcome_id == "A"
    assert market.settled_at is not None


def test_settlement_is_idempotent(exchange, open_market, balances):
    exchange.place_bet("m1", "A", 50.0, "alice")
    exchange.lock_market("m1")
    first = exchange.settle_market("m1", "A")
    paid = balances.balance("alice")
    second = exchange.settle_market("m1", "A")
    assert second == first
    assert balances.balance("alice") == paid
    with pytest.raises(AlreadySettled):
        exchange.settle_market("m1", "B")


def test_settled_market_rejects_bets(exchange, open_market):
    exchange.lock_market("m1")
    exchange.settle_market("m1", "B")
    with pytest.raises(StateError):
        exchange.place_bet("m1", "A", 10.0, "alice")


def test_settlement_requires_lock_by_default(exchange, open_market):
    with pytest.raises(MarketNotLocked):
        exchange.settle_market("m1", "A")
    with pytest.raises(InvalidOutcome):
        exchange.settle_market("m1", "Z")


def test_settlement_from_open_when_lock_not_required(balances):
    settings = Settings(settlement={"require_lock": False})
    exchange = Exchange(InMemoryMarketStore(), balances, settings=settings)
    exchange.ledger.create(binary_market())
    exchange.open_market("m1")
    exchange.place_bet("m1", "B", 20.0, "bob")
    result = exchange.settle_market("m1", "B")
    assert result.settled_bets[0].status == BetStatus.WON


class FlakyPayouts(InMemoryBalanceService):
    """First settlement credit fails once."""

    failed = False

    def credit(self, user_id, amount, reference):
        if reference.startswith("settle:") and not self.failed:
            self.failed = True
            raise BalanceServiceError("payout rail down")
        super().credit(user_id, amount, reference)


def test_interrupted_settlement_resumes_with_recorded_outcome():
    balances = FlakyPayouts({"alice": 500.0, "bob": 500.0})
    exchange = Exchange(InMemoryMarketStore(), balances)
    exchange.ledger.create(binary_market())
    exchange.open_market("m1")
    bet = exchange.place_bet("m1", "A", 40.0, "alice")
    exchange.lock_market("m1")

    with pytest.raises(BalanceServiceError):
        exchange.settle_market("m1", "A")
    market = exchange.get_market("m1")
    assert market.status == MarketStatus.LOCKED
    assert market.winning_outcome_id == "A"
    with pytest.raises(AlreadySettled):
        exchange.settle_market("m1", "B")

    result = exchange.settle_market("m1", "A")
    assert result.total_payout == pytest.approx(bet.shares)
    assert balances.balance("alice") == pytest.approx(460.0 + bet.shares)


class PayoutRejected(InMemoryBalanceService):
    """Settlement credits to one user always fail."""

    def __init__(self, balances, rejected_user):
        super().__init__(balances)
        self.rejected_user = rejected_user

    def credit(self, user_id, amount, reference):
        if reference.startswith("settle:") and user_id == self.rejected_user:
            raise BalanceServiceError("payout rail down")
        super().credit(user_id, amount, reference)


def test_cancel_after_partial_payout_is_rejected():
    balances = PayoutRejected({"alice": 1000.0, "bob": 1000.0}, rejected_user="bob")
    exchange = Exchange(InMemoryMarketStore(), balances)
    exchange.ledger.create(binary_market())
    exchange.open_market("m1")
    exchange.place_bet("m1", "A", 50.0, "alice")
    exchange.place_bet("m1", "A", 50.0, "bob")
    exchange.lock_market("m1")

    with pytest.raises(BalanceServiceError):
        exchange.settle_market("m1", "A")
    alice_after_payout = balances.balance("alice")

    with pytest.raises(AlreadySettled):
        exchange.cancel_market("m1", "rained out")
    with pytest.raises(AlreadySettled):
        exchange.void_market("m1")
    market = exchange.get_market("m1")
    assert market.status == MarketStatus.LOCKED
    assert market.winning_outcome_id == "A"
    assert balances.balance("alice") == pytest.approx(alice_after_payout)
    assert not any(ref.startswith("refund:") for ref, *_ in balances.transactions)


def test_cancel_refunds_every_open_bet(exchange, open_market, balances):
    exchange.place_bet("m1", "A", 100.0, "alice")
    exchange.place_bet("m1", "B", 150.0, "bob")
    exchange.place_bet("m1", "A", 50.0, "carol")
    result = exchange.cancel_market("m1", "event postponed")

    assert result.status == MarketStatus.CANCELLED
    assert len(result.refunds) == 3
    assert result.total_refunded == pytest.approx(300.0)
    assert all(b.status == BetStatus.REFUNDED for b in result.refunds)
    assert all(b.profit_loss == 0.0 for b in result.refunds)
    for user in ("alice", "bob", "carol"):
        assert balances.balance(user) == pytest.approx(10_000.0)
    market = exchange.get_market("m1")
    assert market.settlement_notes == "event postponed"

    again = exchange.cancel_market("m1", "event postponed")
    assert again == result
    with pytest.raises(StateError):
        exchange.void_market("m1")


def test_void_skips_cashed_out_bets(exchange, open_market, balances):
    kept = exchange.place_bet("m1", "A", 100.0, "alice")
    cashed = exchange.place_bet("m1", "B", 70.0, "bob")
    exchange.cash_out(cashed.bet_id)
    result = exchange.void_market("m1", "data error")
    assert [b.bet_id for b in result.refunds] == [kept.bet_id]
    assert result.refunds[0].status == BetStatus.VOIDED
    assert exchange.get_bet(cashed.bet_id).status == BetStatus.CASHED_OUT


def test_cancel_pending_market(exchange):
    exchange.ledger.create(binary_market())
    result = exchange.cancel_market("m1")
    assert result.refunds == []
    assert exchange.get_market("m1").status == MarketStatus.CANCELLED


def test_settling_cancelled_market_is_state_error(exchange, open_market):
    exchange.cancel_market("m1")
    with pytest.raises(StateError):
        exchange.settle_market("m1", "A")
