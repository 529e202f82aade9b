"""Market ledger: serialization scope, versioning and status gating."""

import threading

import pytest

from conftest import binary_market
from predamm.errors import (
    ConcurrencyError,
    InvalidTransition,
    NumericalError,
    ReentrantTrade,
    StateError,
    VersionConflict,
)
from predamm.ledger import MarketLedger
from predamm.models import MarketStatus
from predamm.pricing import lmsr
from predamm.storage import InMemoryMarketStore


@pytest.fixture
def ledger():
    led = MarketLedger(InMemoryMarketStore(), lock_timeout=0.2)
    led.create(binary_market())
    with led.serialized("m1"):
        led.transition("m1", MarketStatus.OPEN, expected_version=0)
    return led


def _buy(ledger, delta, outcome=0, **kwargs):
    market = ledger.snapshot("m1")
    cost = lmsr.cost_to_buy(market.share_vector(), outcome, delta, market.liquidity)
    kwargs.setdefault("expected_version", market.version)
    return ledger.apply_trade("m1", outcome, delta, cost, 1e-9, **kwargs)


def test_apply_trade_updates_shares_volume_and_version(ledger):
    with ledger.serialized("m1"):
        result = _buy(ledger, 50.0)
    assert not result.noop
    assert result.market.version == 2
    assert result.market.outcomes[0].shares == 50.0
    assert result.market.total_volume == pytest.approx(result.cost)
    assert result.price_after > result.price_before
    stored = ledger.snapshot("m1")
    assert stored == result.market
    events = ledger.store.list_events("m1")
    assert len(events) == 1
    assert events[0].kind == "buy"
    assert events[0].version == 2


def test_apply_trade_outside_scope_is_rejected(ledger):
    with pytest.raises(ConcurrencyError):
        _buy(ledger, 10.0)
    assert ledger.snapshot("m1").version == 1


def test_zero_delta_is_explicit_noop(ledger):
    with ledger.serialized("m1"):
        result = ledger.apply_trade("m1", 1, 0.0, 0.0, 1e-9, expected_version=1)
    assert result.noop
    assert result.cost == 0.0
    assert result.price_before == result.price_after == pytest.approx(0.5)
    assert ledger.snapshot("m1").version == 1
    assert ledger.store.list_events("m1") == []


def test_stale_version_conflicts(ledger):
    with ledger.serialized("m1"):
        _buy(ledger, 10.0)
        with pytest.raises(VersionConflict):
            _buy(ledger, 10.0, expected_version=1)


def test_cost_drift_beyond_tolerance_is_rejected(ledger):
    with ledger.serialized("m1"):
        with pytest.raises(ConcurrencyError):
            ledger.apply_trade("m1", 0, 10.0, 1.0, 1e-6, expected_version=1)
    assert ledger.snapshot("m1").outcomes[0].shares == 0.0


def test_locked_market_accepts_sells_not_buys(ledger):
    with ledger.serialized("m1"):
        bought = _buy(ledger, 40.0)
        ledger.transition("m1", MarketStatus.LOCKED, expected_version=bought.market.version)
        with pytest.raises(ConcurrencyError):
            _buy(ledger, 5.0)
        sold = _buy(ledger, -40.0)
    assert sold.cost == pytest.approx(-bought.cost)
    assert sold.market.outcomes[0].shares == pytest.approx(0.0)


def test_terminal_market_rejects_trades(ledger):
    with ledger.serialized("m1"):
        ledger.transition("m1", MarketStatus.VOIDED, expected_version=1)
        with pytest.raises(StateError):
            _buy(ledger, 5.0)


def test_transitions_are_one_directional(ledger):
    with ledger.serialized("m1"):
        ledger.transition("m1", MarketStatus.LOCKED, expected_version=1)
        with pytest.raises(InvalidTransition):
            ledger.transition("m1", MarketStatus.OPEN, expected_version=2)


def test_single_outcome_market_cannot_open():
    led = MarketLedger(InMemoryMarketStore())
    solo = binary_market("solo")
    led.create(solo.model_copy(update={"outcomes": solo.outcomes[:1]}))
    with led.serialized("solo"):
        with pytest.raises(InvalidTransition):
            led.transition("solo", MarketStatus.OPEN, expected_version=0)
    assert led.snapshot("solo").status == MarketStatus.PENDING


def test_scope_is_not_reentrant(ledger):
    with ledger.serialized("m1"):
        with pytest.raises(ReentrantTrade):
            with ledger.serialized("m1"):
                pass
        # Other markets are independent.
        ledger.create(binary_market("m2"))
        with ledger.serialized("m2"):
            pass


def test_lock_timeout_surfaces_concurrency_error(ledger):
    held = threading.Event()
    release = threading.Event()

    def hold():
        with ledger.serialized("m1"):
            held.set()
            release.wait(5)

    t = threading.Thread(target=hold)
    t.start()
    held.wait(5)
    try:
        with pytest.raises(ConcurrencyError):
            with ledger.serialized("m1"):
                pass
    finally:
        release.set()
        t.join()


def test_price_sum_check(ledger):
    # A negative tolerance makes every post-trade check fail.
    ledger.price_sum_tolerance = -1.0
    with ledger.serialized("m1"):
        with pytest.raises(NumericalError):
            _buy(ledger, 5.0)
    assert ledger.snapshot("m1").version == 1
