"""predamm - LMSR automated market maker with market lifecycle and settlement."""

from predamm.exchange import Exchange

__version__ = "0.1.0"

__all__ = ["Exchange", "__version__"]
