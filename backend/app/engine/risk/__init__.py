# Risk management module
from .exit_levels import (
    stop_loss_from_percent,
    take_profit_from_percent,
    validate_take_profit,
    validate_stop_loss,
    validate_trailing_percent,
)

__all__ = [
    "stop_loss_from_percent",
    "take_profit_from_percent",
    "validate_take_profit",
    "validate_stop_loss",
    "validate_trailing_percent",
]
