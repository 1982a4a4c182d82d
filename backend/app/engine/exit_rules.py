"""
SolBridge - Exit Rule Evaluator
Pure, deterministic exit decisions for a position at a given price.

Rule order is fixed: take profit, then stop loss, then trailing stop.
When several trigger on the same price, the first one wins.
"""
from dataclasses import dataclass
from typing import Optional, Tuple, Any

from models.position import PositionSide, ExitReason


@dataclass(frozen=True)
class ExitDecision:
    """Result of evaluating exit rules"""
    should_close: bool
    reason: Optional[ExitReason] = None
    threshold: Optional[float] = None  # The level that was crossed


NO_EXIT = ExitDecision(should_close=False)


def best_price_seen(position: Any) -> float:
    """Most favorable price seen so far, falling back to the entry price"""
    return position.highest_price or position.entry_price


def next_best_price(position: Any, current_price: float) -> Optional[float]:
    """
    New best-seen price if `current_price` improves on it, else None.
    Only tracked when a trailing stop is configured.
    """
    if not position.trailing_stop_percent:
        return None

    best = position.highest_price
    if best is None:
        return current_price

    if position.side == PositionSide.SHORT:
        return current_price if current_price < best else None
    return current_price if current_price > best else None


def trailing_stop_level(position: Any) -> Optional[float]:
    """
    Price at which the trailing stop fires.
    LONG: floor below the highest price. SHORT: ceiling above the lowest price.
    """
    percent = position.trailing_stop_percent
    if not percent:
        return None

    best = best_price_seen(position)
    if position.side == PositionSide.SHORT:
        return best * (1 + percent / 100)
    return best * (1 - percent / 100)


def evaluate(position: Any, current_price: float) -> ExitDecision:
    """
    Decide whether `position` should be closed at `current_price`.

    `position` may be an ORM row or a snapshot; its `highest_price` must
    already include `current_price` for the trailing floor to be current.
    """
    take_profit = position.take_profit_price
    stop_loss = position.stop_loss_price
    is_long = position.side != PositionSide.SHORT

    if take_profit:
        hit = current_price >= take_profit if is_long else current_price <= take_profit
        if hit:
            return ExitDecision(True, ExitReason.TAKE_PROFIT, take_profit)

    if stop_loss:
        hit = current_price <= stop_loss if is_long else current_price >= stop_loss
        if hit:
            return ExitDecision(True, ExitReason.STOP_LOSS, stop_loss)

    level = trailing_stop_level(position)
    if level is not None:
        hit = current_price <= level if is_long else current_price >= level
        if hit:
            return ExitDecision(True, ExitReason.TRAILING_STOP, level)

    return NO_EXIT


def calculate_pnl(
    side: PositionSide,
    entry_price: float,
    close_price: float,
    amount: float
) -> Tuple[float, float]:
    """
    Realized P&L in quote currency and percent of entry.
    `amount` is the base-asset quantity; SHORT profits when price falls.
    """
    price_diff = close_price - entry_price
    if side == PositionSide.SHORT:
        price_diff = -price_diff

    pnl = price_diff * amount
    pnl_percent = (price_diff / entry_price) * 100 if entry_price else 0.0
    return pnl, pnl_percent
