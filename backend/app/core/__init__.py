# Core module initialization
from .config import settings
from .exceptions import SolBridgeException, TradingException, PriceResolutionError

__all__ = ["settings", "SolBridgeException", "TradingException", "PriceResolutionError"]
