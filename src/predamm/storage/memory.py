"""In-process store. Holds immutable snapshots, so readers never alias live state."""

from __future__ import annotations

from threading import Lock
from typing import Iterable

from predamm.errors import BetNotFound, MarketNotFound, VersionConflict
from predamm.models import Bet, BetStatus, Market, MarketStatus, TradeEvent
from predamm.storage.base import MarketStore


class InMemoryMarketStore(MarketStore):
    """Dict-backed store; one instance per engine, no module-level state."""

    def __init__(self) -> None:
        self._markets: dict[str, Market] = {}
        self._bets: dict[str, Bet] = {}  # insertion order == placement order
        self._events: list[TradeEvent] = []
        self._lock = Lock()

    def get_market(self, market_id: str) -> Market:
        with self._lock:
            market = self._markets.get(market_id)
        if market is None:
            raise MarketNotFound(f"Market not found: {market_id}", market_id=market_id)
        return market

    def list_markets(self, status: MarketStatus | None = None) -> list[Market]:
        with self._lock:
            markets = list(self._markets.values())
        if status is not None:
            markets = [m for m in markets if m.status == status]
        return markets

    def save(
        self,
        market: Market,
        expected_version: int | None,
        bets: Iterable[Bet] = (),
        events: Iterable[TradeEvent] = (),
    ) -> None:
        bets = list(bets)
        events = list(events)
        with self._lock:
            current = self._markets.get(market.market_id)
            stored_version = current.version if current is not None else None
            if stored_version != expected_version:
                raise VersionConflict(
                    f"Market {market.market_id} is at version {stored_version}, expected {expected_version}",
                    market_id=market.market_id,
                )
            self._markets[market.market_id] = market
            for bet in bets:
                self._bets[bet.bet_id] = bet
            self._events.extend(events)

    def get_bet(self, bet_id: str) -> Bet:
        with self._lock:
            bet = self._bets.get(bet_id)
        if bet is None:
            raise BetNotFound(f"Bet not found: {bet_id}", bet_id=bet_id)
        return bet

    def list_bets(self, market_id: str, statuses: Iterable[BetStatus] | None = None) -> list[Bet]:
        wanted = set(statuses) if statuses is not None else None
        with self._lock:
            bets = [b for b in self._bets.values() if b.market_id == market_id]
        if wanted is not None:
            bets = [b for b in bets if b.status in wanted]
        return bets

    def list_user_bets(self, user_id: str) -> list[Bet]:
        with self._lock:
            return [b for b in self._bets.values() if b.user_id == user_id]

    def list_events(self, market_id: str | None = None) -> list[TradeEvent]:
        with self._lock:
            events = list(self._events)
        if market_id is not None:
            events = [e for e in events if e.market_id == market_id]
        return events
