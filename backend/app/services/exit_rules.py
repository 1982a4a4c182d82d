"""
SolBridge - Exit Rule Service
The only mutators of monitor-relevant position state besides the monitor:
record positions and set or clear take profit, stop loss, trailing stop
and the auto-exit switch. Malformed rules are rejected here, when set.
"""
from typing import Optional
import logging

from core.exceptions import InvalidExitRuleError, PositionNotFoundError, PositionStateError
from db.repositories.position import PositionRepository
from engine.risk.exit_levels import (
    stop_loss_from_percent,
    take_profit_from_percent,
    validate_take_profit,
    validate_stop_loss,
    validate_trailing_percent,
)
from models.position import Position, PositionStatus
from schemas.position import PositionCreate

logger = logging.getLogger(__name__)


def _resolve_target(price: Optional[float], percent: Optional[float]) -> None:
    if (price is None) == (percent is None):
        raise InvalidExitRuleError("provide exactly one of price or percent")
    if percent is not None and percent <= 0:
        raise InvalidExitRuleError("percent must be positive", {"percent": percent})


class ExitRuleService:
    """Exit-rule configuration for one unit of work"""

    def __init__(self, positions: PositionRepository):
        self.positions = positions

    async def open_position(self, data: PositionCreate) -> Position:
        """Record a filled entry as an OPEN position"""
        if data.take_profit_price is not None:
            validate_take_profit(data.entry_price, data.take_profit_price, data.side)
        if data.stop_loss_price is not None:
            validate_stop_loss(data.entry_price, data.stop_loss_price, data.side)
        if data.trailing_stop_percent is not None:
            validate_trailing_percent(data.trailing_stop_percent)

        has_rule = any(
            v is not None
            for v in (data.take_profit_price, data.stop_loss_price, data.trailing_stop_percent)
        )
        position = await self.positions.create(
            **data.model_dump(exclude={"auto_exit_enabled"}),
            auto_exit_enabled=data.auto_exit_enabled or has_rule,
            status=PositionStatus.OPEN,
        )
        logger.info(
            f"Position {position.id} opened: {position.venue.value} {position.symbol} "
            f"{position.side.value} {position.amount} @ {position.entry_price}"
        )
        return position

    async def get_position(self, position_id: int) -> Position:
        position = await self.positions.get_by_id(position_id)
        if position is None:
            raise PositionNotFoundError(position_id)
        return position

    async def _get_open(self, position_id: int) -> Position:
        position = await self.get_position(position_id)
        if position.status != PositionStatus.OPEN:
            raise PositionStateError(position_id, position.status.value)
        return position

    async def _apply(self, position_id: int, **values) -> Position:
        updated = await self.positions.update_exit_rules(position_id, **values)
        if updated is None:
            # Closed between the read and the write
            position = await self.get_position(position_id)
            raise PositionStateError(position_id, position.status.value)
        return updated

    async def set_take_profit(
        self,
        position_id: int,
        price: Optional[float] = None,
        percent: Optional[float] = None
    ) -> Position:
        """Set TP as an absolute price or a percent gain from entry; enables auto exit"""
        _resolve_target(price, percent)
        position = await self._get_open(position_id)
        if percent is not None:
            price = take_profit_from_percent(position.entry_price, percent, position.side)
        validate_take_profit(position.entry_price, price, position.side)

        logger.info(f"Position {position_id} take profit set to {price}")
        return await self._apply(position_id, take_profit_price=price, auto_exit_enabled=True)

    async def clear_take_profit(self, position_id: int) -> Position:
        await self._get_open(position_id)
        return await self._apply(position_id, take_profit_price=None)

    async def set_stop_loss(
        self,
        position_id: int,
        price: Optional[float] = None,
        percent: Optional[float] = None
    ) -> Position:
        """Set SL as an absolute price or a percent loss from entry; enables auto exit"""
        _resolve_target(price, percent)
        position = await self._get_open(position_id)
        if percent is not None:
            price = stop_loss_from_percent(position.entry_price, percent, position.side)
        validate_stop_loss(position.entry_price, price, position.side)

        logger.info(f"Position {position_id} stop loss set to {price}")
        return await self._apply(position_id, stop_loss_price=price, auto_exit_enabled=True)

    async def clear_stop_loss(self, position_id: int) -> Position:
        await self._get_open(position_id)
        return await self._apply(position_id, stop_loss_price=None)

    async def set_trailing_stop(self, position_id: int, percent: float) -> Position:
        """Trail `percent` behind the best price seen; enables auto exit"""
        validate_trailing_percent(percent)
        await self._get_open(position_id)

        logger.info(f"Position {position_id} trailing stop set to {percent}%")
        return await self._apply(position_id, trailing_stop_percent=percent, auto_exit_enabled=True)

    async def clear_trailing_stop(self, position_id: int) -> Position:
        """Remove the trailing stop and forget the best price seen"""
        await self._get_open(position_id)
        return await self._apply(position_id, trailing_stop_percent=None, highest_price=None)

    async def set_auto_exit(self, position_id: int, enabled: bool) -> Position:
        await self._get_open(position_id)
        logger.info(f"Position {position_id} auto exit {'enabled' if enabled else 'disabled'}")
        return await self._apply(position_id, auto_exit_enabled=enabled)

    async def cancel_position(self, position_id: int) -> Position:
        """Stop tracking an OPEN position without placing an exit order"""
        await self._get_open(position_id)
        if not await self.positions.cancel_position(position_id):
            position = await self.get_position(position_id)
            raise PositionStateError(position_id, position.status.value)

        logger.info(f"Position {position_id} cancelled")
        return await self.get_position(position_id)
