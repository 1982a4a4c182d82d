# Exchange module initialization
from .base import BaseExchange, OrderSide, OrderResult, Ticker
from .ccxt_exchange import CcxtExchange, SUPPORTED_EXCHANGES
from .sessions import ExchangeSessionCache

__all__ = [
    "BaseExchange", "OrderSide", "OrderResult", "Ticker",
    "CcxtExchange", "SUPPORTED_EXCHANGES", "ExchangeSessionCache",
]
