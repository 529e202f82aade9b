"""Market ledger - owns the share vector, status and version of every market.

All writes to a market go through one ``MarketLedger`` and happen inside its
``serialized(market_id)`` scope: one writer per market, markets independent.
"""

from __future__ import annotations

import math
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator

import structlog

from predamm.errors import (
    ConcurrencyError,
    InvalidOutcome,
    InvalidTransition,
    NumericalError,
    ReentrantTrade,
    StateError,
    VersionConflict,
)
from predamm.models import Bet, Market, MarketStatus, TradeEvent
from predamm.pricing import lmsr
from predamm.storage.base import MarketStore

log = structlog.get_logger(__name__)

# Sells (cash-outs) and compensating buys are still allowed after lock.
_BUY_STATUSES = frozenset({MarketStatus.OPEN})
_SELL_STATUSES = frozenset({MarketStatus.OPEN, MarketStatus.LOCKED})


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class TradeResult:
    """Outcome of ``apply_trade``. ``noop`` is set for a zero-share trade."""

    market: Market
    cost: float
    delta: float
    outcome_index: int
    price_before: float
    price_after: float
    noop: bool = False
    event: TradeEvent | None = None


class MarketLedger:
    def __init__(
        self,
        store: MarketStore,
        *,
        price_sum_tolerance: float = 1e-9,
        lock_timeout: float = 5.0,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.store = store
        self.price_sum_tolerance = price_sum_tolerance
        self.lock_timeout = lock_timeout
        self.clock = clock
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._local = threading.local()

    # --- serialization ---
    def _held(self) -> set[str]:
        held = getattr(self._local, "held", None)
        if held is None:
            held = self._local.held = set()
        return held

    def _lock_for(self, market_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(market_id)
            if lock is None:
                lock = self._locks[market_id] = threading.Lock()
            return lock

    def in_scope(self, market_id: str) -> bool:
        return market_id in self._held()

    @contextmanager
    def serialized(self, market_id: str) -> Iterator[None]:
        """Exclusive write scope for one market. Not re-entrant."""
        held = self._held()
        if market_id in held:
            raise ReentrantTrade(
                f"Market {market_id} is already being traded by this thread", market_id=market_id
            )
        lock = self._lock_for(market_id)
        if not lock.acquire(timeout=self.lock_timeout):
            log.warning("market_lock_timeout", market_id=market_id, timeout=self.lock_timeout)
            raise ConcurrencyError(
                f"Timed out after {self.lock_timeout}s waiting for market {market_id}", market_id=market_id
            )
        held.add(market_id)
        try:
            yield
        finally:
            held.discard(market_id)
            lock.release()

    def _require_scope(self, market_id: str) -> None:
        if not self.in_scope(market_id):
            raise ConcurrencyError(
                f"Writes to market {market_id} must happen inside serialized()", market_id=market_id
            )

    # --- reads ---
    def snapshot(self, market_id: str) -> Market:
        """Current immutable snapshot. Safe outside the scope; may be stale there."""
        return self.store.get_market(market_id)

    # --- writes ---
    def create(self, market: Market) -> Market:
        """Persist a brand-new market at version 0."""
        market = market.model_copy(update={"version": 0})
        self.store.save(market, expected_version=None)
        log.info("market_created", market_id=market.market_id, market_type=market.market_type.value)
        return market

    def apply_trade(
        self,
        market_id: str,
        outcome_index: int,
        delta: float,
        expected_cost: float,
        tolerance: float,
        *,
        expected_version: int,
        bets: Iterable[Bet] = (),
        kind: str | None = None,
        bet_id: str | None = None,
        user_id: str | None = None,
    ) -> TradeResult:
        """Move ``q[outcome_index]`` by ``delta`` shares and persist the new version.

        Raises ConcurrencyError when called outside ``serialized``, when the
        market is not tradable in its status, when ``expected_version`` is stale
        (VersionConflict), or when the commit-time cost differs from
        ``expected_cost`` by more than ``tolerance``.  Terminal markets raise
        StateError.
        """
        self._require_scope(market_id)
        market = self.store.get_market(market_id)
        if market.is_terminal:
            raise StateError(f"Market {market_id} is {market.status.value}", market_id=market_id)
        if not 0 <= outcome_index < len(market.outcomes):
            raise InvalidOutcome(f"Outcome index {outcome_index} out of range", market_id=market_id)

        q = market.share_vector()
        b = market.liquidity
        price_before = lmsr.price(q, outcome_index, b)
        if delta == 0:
            return TradeResult(
                market=market,
                cost=0.0,
                delta=0.0,
                outcome_index=outcome_index,
                price_before=price_before,
                price_after=price_before,
                noop=True,
            )

        kind = kind or ("buy" if delta > 0 else "sell")
        allowed = _BUY_STATUSES if delta > 0 and kind != "compensate" else _SELL_STATUSES
        if market.status not in allowed:
            raise ConcurrencyError(
                f"Market {market_id} is {market.status.value}; {kind} not allowed", market_id=market_id
            )
        if market.version != expected_version:
            raise VersionConflict(
                f"Market {market_id} moved to version {market.version}, quoted at {expected_version}",
                market_id=market_id,
            )

        trade_cost = lmsr.cost_to_buy(q, outcome_index, delta, b)
        if abs(trade_cost - expected_cost) > tolerance:
            raise ConcurrencyError(
                f"Cost at commit {trade_cost:.6f} differs from quoted {expected_cost:.6f}",
                market_id=market_id,
            )

        new_q = list(q)
        new_q[outcome_index] += delta
        new_prices = lmsr.prices(new_q, b)
        if abs(math.fsum(new_prices) - 1.0) > self.price_sum_tolerance:
            raise NumericalError(f"Prices for market {market_id} no longer sum to 1", market_id=market_id)

        ts = self.clock()
        outcome = market.outcomes[outcome_index]
        outcomes = list(market.outcomes)
        outcomes[outcome_index] = outcome.model_copy(
            update={"shares": new_q[outcome_index], "volume": outcome.volume + abs(trade_cost)}
        )
        updated = market.model_copy(
            update={
                "outcomes": tuple(outcomes),
                "total_volume": market.total_volume + abs(trade_cost),
                "version": market.version + 1,
                "updated_at": ts,
            }
        )
        event = TradeEvent(
            market_id=market_id,
            kind=kind,
            outcome_id=outcome.outcome_id,
            delta=delta,
            cost=trade_cost,
            version=updated.version,
            bet_id=bet_id,
            user_id=user_id,
            price_before=price_before,
            price_after=new_prices[outcome_index],
            ts=ts,
        )
        self.store.save(updated, expected_version=market.version, bets=bets, events=[event])
        log.debug(
            "trade_committed",
            market_id=market_id,
            kind=kind,
            outcome_id=outcome.outcome_id,
            delta=delta,
            cost=trade_cost,
            version=updated.version,
        )
        return TradeResult(
            market=updated,
            cost=trade_cost,
            delta=delta,
            outcome_index=outcome_index,
            price_before=price_before,
            price_after=new_prices[outcome_index],
            event=event,
        )

    def update(
        self,
        market_id: str,
        *,
        expected_version: int,
        bets: Iterable[Bet] = (),
        **changes: Any,
    ) -> Market:
        """Persist non-trade changes (resolution notes, bet updates) as a new version."""
        self._require_scope(market_id)
        market = self.store.get_market(market_id)
        if market.is_terminal:
            raise StateError(f"Market {market_id} is {market.status.value}", market_id=market_id)
        if market.version != expected_version:
            raise VersionConflict(
                f"Market {market_id} moved to version {market.version}, expected {expected_version}",
                market_id=market_id,
            )
        updated = market.model_copy(
            update={**changes, "version": market.version + 1, "updated_at": self.clock()}
        )
        self.store.save(updated, expected_version=market.version, bets=bets)
        return updated

    def transition(
        self,
        market_id: str,
        to: MarketStatus,
        *,
        expected_version: int,
        bets: Iterable[Bet] = (),
        **changes: Any,
    ) -> Market:
        """Move a market forward in its lifecycle. Backward moves raise InvalidTransition."""
        self._require_scope(market_id)
        market = self.store.get_market(market_id)
        if not market.can_transition(to):
            raise InvalidTransition(
                f"Market {market_id} cannot go from {market.status.value} to {to.value}",
                market_id=market_id,
                status=market.status.value,
            )
        if to == MarketStatus.OPEN and (len(market.outcomes) < 2 or not market.liquidity > 0):
            raise InvalidTransition(
                f"Market {market_id} needs at least 2 outcomes and positive liquidity to open",
                market_id=market_id,
                outcomes=len(market.outcomes),
            )
        updated = self.update(market_id, expected_version=expected_version, bets=bets, status=to, **changes)
        log.info("market_status_changed", market_id=market_id, from_status=market.status.value, to_status=to.value)
        return updated
