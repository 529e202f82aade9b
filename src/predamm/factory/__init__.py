from predamm.factory.markets import MARKET_DEFAULTS, MarketFactory, MarketParams

__all__ = ["MARKET_DEFAULTS", "MarketFactory", "MarketParams"]
