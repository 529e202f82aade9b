"""Store protocol - persistence boundary for markets, bets and the trade log."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable

from predamm.models import Bet, BetStatus, Market, MarketStatus, TradeEvent


class MarketStore(ABC):
    """Persistence for market snapshots, bets and trade events.

    ``save`` is the only write path for markets and bets.  It is atomic: the
    market snapshot and every bet passed with it land together or not at all,
    and the market is only written if the stored version still equals
    ``expected_version`` (``None`` means the market must not exist yet).
    Implementations raise :class:`~predamm.errors.VersionConflict` on a stale
    version and :class:`~predamm.errors.MarketNotFound` /
    :class:`~predamm.errors.BetNotFound` for unknown ids.
    """

    @abstractmethod
    def get_market(self, market_id: str) -> Market:
        ...

    @abstractmethod
    def list_markets(self, status: MarketStatus | None = None) -> list[Market]:
        ...

    @abstractmethod
    def save(
        self,
        market: Market,
        expected_version: int | None,
        bets: Iterable[Bet] = (),
        events: Iterable[TradeEvent] = (),
    ) -> None:
        ...

    @abstractmethod
    def get_bet(self, bet_id: str) -> Bet:
        ...

    @abstractmethod
    def list_bets(self, market_id: str, statuses: Iterable[BetStatus] | None = None) -> list[Bet]:
        """Bets for a market in placement order."""
        ...

    @abstractmethod
    def list_user_bets(self, user_id: str) -> list[Bet]:
        ...

    @abstractmethod
    def list_events(self, market_id: str | None = None) -> list[TradeEvent]:
        """Trade log in commit order."""
        ...

    def close(self) -> None:
        """Release resources. Optional."""
        pass
