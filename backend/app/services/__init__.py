# Services module initialization
from .telegram import TelegramNotifier
from .price_resolver import PriceResolver, PriceOracleChain
from .execution import OrderExecutionAdapter, ExitFill
from .locks import PositionLockManager
from .exit_rules import ExitRuleService

__all__ = [
    "TelegramNotifier",
    "PriceResolver", "PriceOracleChain",
    "OrderExecutionAdapter", "ExitFill",
    "PositionLockManager",
    "ExitRuleService",
]
