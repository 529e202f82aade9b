"""Bet processor - turns stakes into shares and cash-outs back into money."""

from __future__ import annotations

import math
import uuid
from typing import Callable

import structlog

from predamm.balance.base import BalanceService
from predamm.errors import (
    BetOutOfRange,
    ConcurrencyError,
    ExposureExceeded,
    ExternalError,
    InvalidOutcome,
    MarketClosed,
    MarketNotOpen,
    NotCashable,
    ReentrantTrade,
    SlippageExceeded,
    SolverDidNotConverge,
)
from predamm.ledger.engine import MarketLedger
from predamm.models import Bet, BetStatus, CashOutResult, Market, MarketStatus, Quote
from predamm.pricing import lmsr
from predamm.pricing.odds import probability_to_american_odds

log = structlog.get_logger(__name__)

_CASHABLE_MARKET_STATUSES = frozenset({MarketStatus.OPEN, MarketStatus.LOCKED})

# Stored and displayed probabilities stay inside (0, 1) even when a price rounds to 0 or 1.
_DISPLAY_EPS = 1e-12


def display_probability(p: float) -> float:
    return min(max(p, _DISPLAY_EPS), 1.0 - _DISPLAY_EPS)


def new_bet_id() -> str:
    return f"bet_{uuid.uuid4().hex}"


class BetProcessor:
    """Places bets and cash-outs against a :class:`MarketLedger`.

    Every state-changing call runs inside ``ledger.serialized(market_id)`` and
    prices against the snapshot read there. Concurrency errors are retried
    against fresh state up to ``max_trade_attempts``.
    """

    def __init__(
        self,
        ledger: MarketLedger,
        balances: BalanceService,
        *,
        solver_tolerance: float = lmsr.DEFAULT_TOLERANCE,
        solver_max_iterations: int = lmsr.DEFAULT_MAX_ITERATIONS,
        trade_cost_tolerance: float = 1e-6,
        max_trade_attempts: int = 3,
        id_factory: Callable[[], str] = new_bet_id,
    ) -> None:
        self.ledger = ledger
        self.balances = balances
        self.solver_tolerance = solver_tolerance
        self.solver_max_iterations = solver_max_iterations
        self.trade_cost_tolerance = trade_cost_tolerance
        self.max_trade_attempts = max(1, max_trade_attempts)
        self.id_factory = id_factory

    # --- helpers ---
    def _check_open(self, market: Market) -> None:
        if market.status != MarketStatus.OPEN:
            raise MarketNotOpen(
                f"Market {market.market_id} is {market.status.value}",
                market_id=market.market_id,
                status=market.status.value,
            )
        if market.closes_at is not None and self.ledger.clock() >= market.closes_at:
            raise MarketNotOpen(f"Market {market.market_id} closed for betting", market_id=market.market_id)

    def _outcome_index(self, market: Market, outcome_id: str) -> int:
        index = market.outcome_index(outcome_id)
        if index is None:
            raise InvalidOutcome(
                f"Outcome {outcome_id} not in market {market.market_id}",
                market_id=market.market_id,
                outcome_id=outcome_id,
            )
        return index

    def _solve(self, market: Market, index: int, amount: float) -> float:
        q = market.share_vector()
        result = lmsr.shares_for_cost(
            q,
            index,
            amount,
            market.liquidity,
            tolerance=self.solver_tolerance,
            max_iterations=self.solver_max_iterations,
        )
        if isinstance(result, lmsr.MaxIterationsExceeded):
            log.warning("solver_retry", market_id=market.market_id, amount=amount, iterations=result.iterations)
            result = lmsr.shares_for_cost(
                q,
                index,
                amount,
                market.liquidity,
                tolerance=self.solver_tolerance,
                max_iterations=self.solver_max_iterations,
                widen=True,
            )
        if isinstance(result, lmsr.MaxIterationsExceeded):
            raise SolverDidNotConverge(
                f"No share count found for {amount} on market {market.market_id}",
                market_id=market.market_id,
                lo=result.lo,
                hi=result.hi,
            )
        return result.shares

    def _with_retries(self, operation: str, market_id: str, fn: Callable[[], object]):
        for attempt in range(1, self.max_trade_attempts + 1):
            try:
                return fn()
            except ReentrantTrade:
                raise
            except ConcurrencyError as e:
                if attempt >= self.max_trade_attempts:
                    raise
                log.info("trade_retry", operation=operation, market_id=market_id, attempt=attempt, error=e.message)

    # --- quotes ---
    def get_quote(self, market_id: str, outcome_id: str, amount: float) -> Quote:
        """Read-only price for spending ``amount``. Nothing is reserved."""
        if not math.isfinite(amount) or amount <= 0:
            raise BetOutOfRange(f"Amount must be a positive number, got {amount!r}", amount=amount)
        market = self.ledger.snapshot(market_id)
        self._check_open(market)
        index = self._outcome_index(market, outcome_id)
        shares = self._solve(market, index, amount)
        q = market.share_vector()
        price_before = lmsr.price(q, index, market.liquidity)
        q[index] += shares
        price_after = lmsr.price(q, index, market.liquidity)
        return Quote(
            market_id=market_id,
            outcome_id=outcome_id,
            amount=amount,
            shares=shares,
            price_before=price_before,
            price_after=price_after,
            average_price=amount / shares,
            potential_payout=shares,
            odds_before=probability_to_american_odds(display_probability(price_before)),
        )

    # --- placement ---
    def place_bet(
        self,
        market_id: str,
        outcome_id: str,
        amount: float,
        user_id: str,
        max_slippage: float | None = None,
    ) -> Bet:
        if not math.isfinite(amount):
            raise BetOutOfRange(f"Amount must be finite, got {amount!r}", amount=amount)
        return self._with_retries(
            "place_bet",
            market_id,
            lambda: self._place_once(market_id, outcome_id, amount, user_id, max_slippage),
        )

    def _place_once(
        self,
        market_id: str,
        outcome_id: str,
        amount: float,
        user_id: str,
        max_slippage: float | None,
    ) -> Bet:
        with self.ledger.serialized(market_id):
            market = self.ledger.snapshot(market_id)
            self._check_open(market)
            index = self._outcome_index(market, outcome_id)
            if not market.min_bet <= amount <= market.max_bet:
                raise BetOutOfRange(
                    f"Bet must be between {market.min_bet} and {market.max_bet}",
                    amount=amount,
                    min_bet=market.min_bet,
                    max_bet=market.max_bet,
                )

            shares = self._solve(market, index, amount)
            q = market.share_vector()
            b = market.liquidity
            expected_cost = lmsr.cost_to_buy(q, index, shares, b)

            liabilities = market.liabilities()
            liabilities[index] += shares
            worst_case = max(liabilities)
            if worst_case > market.max_exposure:
                raise ExposureExceeded(
                    f"Liability {worst_case:.2f} would exceed max exposure {market.max_exposure:.2f}",
                    market_id=market_id,
                    liability=worst_case,
                    max_exposure=market.max_exposure,
                )

            price_before = lmsr.price(q, index, b)
            limit = max_slippage if max_slippage is not None else market.max_slippage
            if limit is not None:
                q_after = list(q)
                q_after[index] += shares
                slippage = (lmsr.price(q_after, index, b) - price_before) / display_probability(price_before)
                if slippage > limit:
                    raise SlippageExceeded(
                        f"Price would move {slippage:.2%}, limit {limit:.2%}",
                        market_id=market_id,
                        slippage=slippage,
                    )

            ts = self.ledger.clock()
            bet = Bet(
                bet_id=self.id_factory(),
                market_id=market_id,
                outcome_id=outcome_id,
                outcome_label=market.outcomes[index].label,
                user_id=user_id,
                amount=amount,
                shares=shares,
                probability_at_placement=display_probability(price_before),
                odds_at_placement=probability_to_american_odds(display_probability(price_before)),
                potential_payout=shares,
                status=BetStatus.ACTIVE,
                placed_at=ts,
                updated_at=ts,
            )

            # Funds move first; a failed commit gives them back.
            self.balances.debit(user_id, amount, f"bet:{bet.bet_id}")
            try:
                self.ledger.apply_trade(
                    market_id,
                    index,
                    shares,
                    expected_cost,
                    self.trade_cost_tolerance,
                    expected_version=market.version,
                    bets=[bet],
                    kind="buy",
                    bet_id=bet.bet_id,
                    user_id=user_id,
                )
            except Exception as e:
                log.warning("balance_rollback", bet_id=bet.bet_id, user_id=user_id, amount=amount, error=str(e))
                self.balances.credit(user_id, amount, f"rollback:{bet.bet_id}")
                raise

        log.info(
            "bet_placed",
            bet_id=bet.bet_id,
            market_id=market_id,
            outcome_id=outcome_id,
            user_id=user_id,
            amount=amount,
            shares=round(shares, 4),
            price=round(price_before, 4),
        )
        return bet

    # --- cash-out ---
    def _cashable(self, market: Market, bet: Bet) -> int:
        if market.status not in _CASHABLE_MARKET_STATUSES or market.winning_outcome_id is not None:
            raise MarketClosed(
                f"Market {market.market_id} is {market.status.value}; cash-out closed",
                market_id=market.market_id,
            )
        if not market.cash_out_enabled:
            raise NotCashable(f"Cash-out is disabled for market {market.market_id}", bet_id=bet.bet_id)
        if bet.status != BetStatus.ACTIVE:
            raise NotCashable(f"Bet {bet.bet_id} is {bet.status.value}", bet_id=bet.bet_id)
        return self._outcome_index(market, bet.outcome_id)

    def get_cash_out_value(self, bet_id: str) -> float:
        """Current cash-out value at the latest snapshot. Read-only."""
        bet = self.ledger.store.get_bet(bet_id)
        market = self.ledger.snapshot(bet.market_id)
        index = self._cashable(market, bet)
        return lmsr.cash_out_value(market.share_vector(), index, bet.shares, market.liquidity)

    def cash_out(self, bet_id: str) -> CashOutResult:
        bet = self.ledger.store.get_bet(bet_id)
        return self._with_retries("cash_out", bet.market_id, lambda: self._cash_out_once(bet_id))

    def _cash_out_once(self, bet_id: str) -> CashOutResult:
        market_id = self.ledger.store.get_bet(bet_id).market_id
        with self.ledger.serialized(market_id):
            bet = self.ledger.store.get_bet(bet_id)
            market = self.ledger.snapshot(market_id)
            index = self._cashable(market, bet)
            value = lmsr.cash_out_value(market.share_vector(), index, bet.shares, market.liquidity)

            ts = self.ledger.clock()
            cashed = bet.model_copy(
                update={
                    "status": BetStatus.CASHED_OUT,
                    "cashed_out_amount": value,
                    "settled_amount": value,
                    "profit_loss": value - bet.amount,
                    "settled_at": ts,
                    "updated_at": ts,
                }
            )
            trade = self.ledger.apply_trade(
                market_id,
                index,
                -bet.shares,
                -value,
                self.trade_cost_tolerance,
                expected_version=market.version,
                bets=[cashed],
                kind="sell",
                bet_id=bet_id,
                user_id=bet.user_id,
            )
            try:
                self.balances.credit(bet.user_id, value, f"cashout:{bet_id}")
            except Exception as e:
                # Reverse the sell so the bet keeps its shares.
                q = trade.market.share_vector()
                try:
                    self.ledger.apply_trade(
                        market_id,
                        index,
                        bet.shares,
                        lmsr.cost_to_buy(q, index, bet.shares, market.liquidity),
                        self.trade_cost_tolerance,
                        expected_version=trade.market.version,
                        bets=[bet],
                        kind="compensate",
                        bet_id=bet_id,
                        user_id=bet.user_id,
                    )
                except Exception as comp:
                    log.critical(
                        "cash_out_compensation_failed",
                        bet_id=bet_id,
                        market_id=market_id,
                        user_id=bet.user_id,
                        value=value,
                        credit_error=str(e),
                        compensation_error=str(comp),
                    )
                    raise ExternalError(
                        f"Cash-out credit for bet {bet_id} failed ({e}) and the sell could not be reversed ({comp})",
                        bet_id=bet_id,
                        market_id=market_id,
                        user_id=bet.user_id,
                        value=value,
                    ) from comp
                log.error("cash_out_compensated", bet_id=bet_id, market_id=market_id, error=str(e))
                raise

        log.info("bet_cashed_out", bet_id=bet_id, market_id=market_id, value=round(value, 4), amount=bet.amount)
        return CashOutResult(bet=cashed, value=value)
