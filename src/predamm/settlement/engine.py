"""Settlement, cancellation and void - the terminal transitions of a market."""

from __future__ import annotations

import structlog

from predamm.balance.base import BalanceService
from predamm.errors import AlreadySettled, InvalidOutcome, MarketNotLocked, StateError
from predamm.ledger.engine import MarketLedger
from predamm.models import (
    OPEN_BET_STATUSES,
    Bet,
    BetStatus,
    Market,
    MarketStatus,
    RefundResult,
    SettlementResult,
)

log = structlog.get_logger(__name__)


class SettlementEngine:
    """Resolves markets and pays out through the balance service.

    Payouts and refunds carry per-bet references (``settle:<bet_id>``,
    ``refund:<bet_id>``), so a settlement interrupted between credits can be
    re-run with the same outcome without paying anyone twice.
    """

    def __init__(self, ledger: MarketLedger, balances: BalanceService, *, require_lock: bool = True) -> None:
        self.ledger = ledger
        self.balances = balances
        self.require_lock = require_lock

    def _settlement_result(self, market: Market) -> SettlementResult:
        settled = self.ledger.store.list_bets(market.market_id, statuses=[BetStatus.WON, BetStatus.LOST])
        return SettlementResult(
            market_id=market.market_id,
            winning_outcome_id=market.winning_outcome_id or "",
            settled_bets=settled,
            total_payout=sum(b.settled_amount or 0.0 for b in settled),
            settled_at=market.settled_at,
        )

    def settle_market(self, market_id: str, winning_outcome_id: str) -> SettlementResult:
        with self.ledger.serialized(market_id):
            market = self.ledger.snapshot(market_id)
            if market.status == MarketStatus.SETTLED:
                if market.winning_outcome_id == winning_outcome_id:
                    return self._settlement_result(market)
                raise AlreadySettled(
                    f"Market {market_id} already settled on {market.winning_outcome_id}",
                    market_id=market_id,
                    winning_outcome_id=market.winning_outcome_id,
                )
            if market.is_terminal:
                raise StateError(f"Market {market_id} is {market.status.value}", market_id=market_id)
            if market.outcome_index(winning_outcome_id) is None:
                raise InvalidOutcome(
                    f"Outcome {winning_outcome_id} not in market {market_id}",
                    market_id=market_id,
                    outcome_id=winning_outcome_id,
                )
            if market.winning_outcome_id is not None and market.winning_outcome_id != winning_outcome_id:
                raise AlreadySettled(
                    f"Market {market_id} is being settled on {market.winning_outcome_id}",
                    market_id=market_id,
                    winning_outcome_id=market.winning_outcome_id,
                )
            allowed = {MarketStatus.LOCKED} if self.require_lock else {MarketStatus.LOCKED, MarketStatus.OPEN}
            if market.status not in allowed:
                raise MarketNotLocked(
                    f"Market {market_id} must be locked before settlement (is {market.status.value})",
                    market_id=market_id,
                )

            if market.winning_outcome_id is None:
                market = self.ledger.update(
                    market_id, expected_version=market.version, winning_outcome_id=winning_outcome_id
                )
                log.info("resolution_recorded", market_id=market_id, winning_outcome_id=winning_outcome_id)

            ts = self.ledger.clock()
            settled: list[Bet] = []
            for bet in self.ledger.store.list_bets(market_id, statuses=OPEN_BET_STATUSES):
                won = bet.outcome_id == winning_outcome_id
                payout = bet.shares if won else 0.0
                if won:
                    self.balances.credit(bet.user_id, payout, f"settle:{bet.bet_id}")
                settled.append(
                    bet.model_copy(
                        update={
                            "status": BetStatus.WON if won else BetStatus.LOST,
                            "settled_amount": payout,
                            "profit_loss": payout - bet.amount,
                            "settled_at": ts,
                            "updated_at": ts,
                        }
                    )
                )
            market = self.ledger.transition(
                market_id,
                MarketStatus.SETTLED,
                expected_version=market.version,
                bets=settled,
                settled_at=ts,
            )
            result = self._settlement_result(market)

        log.info(
            "market_settled",
            market_id=market_id,
            winning_outcome_id=winning_outcome_id,
            bets=len(result.settled_bets),
            total_payout=round(result.total_payout, 4),
        )
        return result

    def cancel_market(self, market_id: str, reason: str = "") -> RefundResult:
        return self._refund_all(market_id, reason, MarketStatus.CANCELLED, BetStatus.REFUNDED)

    def void_market(self, market_id: str, reason: str = "") -> RefundResult:
        return self._refund_all(market_id, reason, MarketStatus.VOIDED, BetStatus.VOIDED)

    def _refund_result(self, market: Market, bet_status: BetStatus) -> RefundResult:
        refunds = self.ledger.store.list_bets(market.market_id, statuses=[bet_status])
        return RefundResult(
            market_id=market.market_id,
            status=market.status,
            refunds=refunds,
            total_refunded=sum(b.settled_amount or 0.0 for b in refunds),
        )

    def _refund_all(
        self,
        market_id: str,
        reason: str,
        target: MarketStatus,
        bet_status: BetStatus,
    ) -> RefundResult:
        with self.ledger.serialized(market_id):
            market = self.ledger.snapshot(market_id)
            if market.status == target:
                return self._refund_result(market, bet_status)
            if market.is_terminal:
                raise StateError(
                    f"Market {market_id} is already {market.status.value}",
                    market_id=market_id,
                    status=market.status.value,
                )
            if market.winning_outcome_id is not None:
                # Winners may already hold settle: credits; only settle_market can finish this market.
                raise AlreadySettled(
                    f"Market {market_id} has a recorded result ({market.winning_outcome_id}); resume settlement",
                    market_id=market_id,
                    winning_outcome_id=market.winning_outcome_id,
                )

            ts = self.ledger.clock()
            refunded: list[Bet] = []
            for bet in self.ledger.store.list_bets(market_id, statuses=OPEN_BET_STATUSES):
                self.balances.credit(bet.user_id, bet.amount, f"refund:{bet.bet_id}")
                refunded.append(
                    bet.model_copy(
                        update={
                            "status": bet_status,
                            "settled_amount": bet.amount,
                            "profit_loss": 0.0,
                            "settled_at": ts,
                            "updated_at": ts,
                        }
                    )
                )
            market = self.ledger.transition(
                market_id,
                target,
                expected_version=market.version,
                bets=refunded,
                settlement_notes=reason or None,
                settled_at=ts,
            )
            result = self._refund_result(market, bet_status)

        log.info(
            "market_refunded",
            market_id=market_id,
            status=target.value,
            refunds=len(result.refunds),
            total_refunded=round(result.total_refunded, 4),
        )
        return result
