"""
SolBridge - Exit Level Calculator
Derive take profit / stop loss prices and validate them against the entry.
"""
from models.position import PositionSide
from core.exceptions import InvalidExitRuleError


def stop_loss_from_percent(entry_price: float, percent: float, side: PositionSide) -> float:
    """Stop loss `percent` away from entry, on the losing side"""
    if side == PositionSide.LONG:
        return entry_price * (1 - percent / 100)
    return entry_price * (1 + percent / 100)


def take_profit_from_percent(entry_price: float, percent: float, side: PositionSide) -> float:
    """Take profit `percent` away from entry, on the winning side"""
    if side == PositionSide.LONG:
        return entry_price * (1 + percent / 100)
    return entry_price * (1 - percent / 100)


def validate_take_profit(entry_price: float, price: float, side: PositionSide) -> None:
    """TP must sit above entry for LONG, below entry for SHORT"""
    if price <= 0:
        raise InvalidExitRuleError("take profit must be positive", {"price": price})
    if side == PositionSide.LONG and price <= entry_price:
        raise InvalidExitRuleError(
            f"take profit {price} must be above entry {entry_price} for LONG",
            {"price": price, "entry_price": entry_price}
        )
    if side == PositionSide.SHORT and price >= entry_price:
        raise InvalidExitRuleError(
            f"take profit {price} must be below entry {entry_price} for SHORT",
            {"price": price, "entry_price": entry_price}
        )


def validate_stop_loss(entry_price: float, price: float, side: PositionSide) -> None:
    """SL must sit below entry for LONG, above entry for SHORT"""
    if price <= 0:
        raise InvalidExitRuleError("stop loss must be positive", {"price": price})
    if side == PositionSide.LONG and price >= entry_price:
        raise InvalidExitRuleError(
            f"stop loss {price} must be below entry {entry_price} for LONG",
            {"price": price, "entry_price": entry_price}
        )
    if side == PositionSide.SHORT and price <= entry_price:
        raise InvalidExitRuleError(
            f"stop loss {price} must be above entry {entry_price} for SHORT",
            {"price": price, "entry_price": entry_price}
        )


def validate_trailing_percent(percent: float) -> None:
    if not 0 < percent < 100:
        raise InvalidExitRuleError(
            f"trailing stop must be between 0 and 100 percent, got {percent}",
            {"percent": percent}
        )
