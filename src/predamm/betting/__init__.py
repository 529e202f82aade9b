from predamm.betting.processor import BetProcessor, new_bet_id

__all__ = ["BetProcessor", "new_bet_id"]
