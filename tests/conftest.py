"""Shared fixtures: in-memory exchange and a binary market."""

import tempfile
from pathlib import Path

import pytest

from predamm.balance import InMemoryBalanceService
from predamm.exchange import Exchange
from predamm.models import Market, MarketType, Outcome
from predamm.storage import InMemoryMarketStore
from predamm.storage.db import get_connection, init_schema


def binary_market(market_id="m1", liquidity=100.0, **kwargs) -> Market:
    fields = {"max_bet": 1000.0, "max_exposure": 10000.0}
    fields.update(kwargs)
    return Market(
        market_id=market_id,
        market_type=MarketType.MATCHUP,
        title="A vs B",
        outcomes=(Outcome(outcome_id="A", label="Team A"), Outcome(outcome_id="B", label="Team B")),
        liquidity=liquidity,
        **fields,
    )


@pytest.fixture
def balances():
    svc = InMemoryBalanceService()
    for user in ("alice", "bob", "carol"):
        svc.deposit(user, 10_000.0, f"seed:{user}")
    return svc


@pytest.fixture
def exchange(balances):
    return Exchange(InMemoryMarketStore(), balances)


@pytest.fixture
def open_market(exchange):
    """Binary b=100 market, open for betting."""
    exchange.ledger.create(binary_market())
    return exchange.open_market("m1")


@pytest.fixture
def temp_db():
    tmp = tempfile.mkdtemp()
    path = Path(tmp) / "test.duckdb"
    conn = get_connection(path)
    init_schema(conn)
    yield conn
    conn.close()
    path.unlink(missing_ok=True)
    Path(tmp).rmdir()
