"""Exchange - the single entry point wiring ledger, processor, settlement and factory."""

from __future__ import annotations

from typing import Any, Callable, Iterable

from predamm.balance import BalanceService, DuckDBBalanceService, InMemoryBalanceService
from predamm.betting import BetProcessor
from predamm.config.settings import Settings
from predamm.factory import MarketFactory, MarketParams
from predamm.ledger import MarketLedger, now_ms
from predamm.models import (
    Bet,
    BetStatus,
    CashOutResult,
    Market,
    MarketStatus,
    MarketType,
    Quote,
    RefundResult,
    SettlementResult,
)
from predamm.settlement import SettlementEngine
from predamm.storage import DuckDBMarketStore, InMemoryMarketStore, MarketStore


class Exchange:
    """Market maker facade. Store and balance service are injected; nothing is global."""

    def __init__(
        self,
        store: MarketStore,
        balances: BalanceService,
        settings: Settings | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        settings = settings or Settings()
        self.settings = settings
        self.store = store
        self.balances = balances
        self.ledger = MarketLedger(
            store,
            price_sum_tolerance=settings.price_sum_tolerance,
            lock_timeout=settings.lock_timeout_sec,
            clock=clock,
        )
        self.processor = BetProcessor(
            self.ledger,
            balances,
            solver_tolerance=settings.solver_tolerance,
            solver_max_iterations=settings.solver_max_iterations,
            trade_cost_tolerance=settings.trade_cost_tolerance,
            max_trade_attempts=settings.max_trade_attempts,
        )
        self.settlement = SettlementEngine(self.ledger, balances, require_lock=settings.settlement_require_lock)
        self.factory = MarketFactory(
            overrides={t.value: settings.market_defaults(t.value) for t in MarketType},
            clock=clock,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> Exchange:
        """Exchange for ``[storage] backend``: DuckDB at ``settings.db_path`` or in-memory."""
        if settings.storage_backend == "memory":
            return cls(InMemoryMarketStore(), InMemoryBalanceService(), settings=settings)
        store = DuckDBMarketStore.open(settings.db_path)
        balances = DuckDBBalanceService(store.conn.cursor(), owns_connection=True)
        return cls(store, balances, settings=settings)

    def close(self) -> None:
        if isinstance(self.balances, DuckDBBalanceService):
            self.balances.close()
        self.store.close()

    # --- lifecycle ---
    def create_market(self, market_type: MarketType | str, params: dict[str, Any] | MarketParams) -> Market:
        return self.ledger.create(self.factory.create(market_type, params))

    def _transition(self, market_id: str, to: MarketStatus) -> Market:
        with self.ledger.serialized(market_id):
            market = self.ledger.snapshot(market_id)
            return self.ledger.transition(market_id, to, expected_version=market.version)

    def open_market(self, market_id: str) -> Market:
        return self._transition(market_id, MarketStatus.OPEN)

    def lock_market(self, market_id: str) -> Market:
        return self._transition(market_id, MarketStatus.LOCKED)

    # --- trading ---
    def place_bet(
        self,
        market_id: str,
        outcome_id: str,
        amount: float,
        user_id: str,
        max_slippage: float | None = None,
    ) -> Bet:
        return self.processor.place_bet(market_id, outcome_id, amount, user_id, max_slippage=max_slippage)

    def get_quote(self, market_id: str, outcome_id: str, amount: float) -> Quote:
        return self.processor.get_quote(market_id, outcome_id, amount)

    def cash_out(self, bet_id: str) -> CashOutResult:
        return self.processor.cash_out(bet_id)

    def get_cash_out_value(self, bet_id: str) -> float:
        return self.processor.get_cash_out_value(bet_id)

    # --- resolution ---
    def settle_market(self, market_id: str, winning_outcome_id: str) -> SettlementResult:
        return self.settlement.settle_market(market_id, winning_outcome_id)

    def cancel_market(self, market_id: str, reason: str = "") -> RefundResult:
        return self.settlement.cancel_market(market_id, reason)

    def void_market(self, market_id: str, reason: str = "") -> RefundResult:
        return self.settlement.void_market(market_id, reason)

    # --- reads ---
    def get_market(self, market_id: str) -> Market:
        return self.store.get_market(market_id)

    def list_markets(self, status: MarketStatus | None = None) -> list[Market]:
        return self.store.list_markets(status)

    def get_bet(self, bet_id: str) -> Bet:
        return self.store.get_bet(bet_id)

    def list_bets(self, market_id: str, statuses: Iterable[BetStatus] | None = None) -> list[Bet]:
        return self.store.list_bets(market_id, statuses)

    def list_user_bets(self, user_id: str) -> list[Bet]:
        return self.store.list_user_bets(user_id)
