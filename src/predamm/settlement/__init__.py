from predamm.settlement.engine import SettlementEngine

__all__ = ["SettlementEngine"]
