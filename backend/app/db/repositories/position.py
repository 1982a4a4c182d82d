"""
SolBridge - Position Repository
Typed accessors over the position store; no business logic.
"""
from typing import Optional, List
import enum

from sqlalchemy import select, update, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from .base import BaseRepository
from db.base import utcnow
from models.position import Position, PositionSide, PositionStatus, ExitReason


class CloseResult(str, enum.Enum):
    """Outcome of a conditional close"""
    CLOSED = "CLOSED"
    ALREADY_CLOSED = "ALREADY_CLOSED"


class PositionRepository(BaseRepository[Position]):
    """Repository for Position model operations"""

    def __init__(self, session: AsyncSession):
        super().__init__(Position, session)

    async def list_open_auto_exit_positions(self) -> List[Position]:
        """All OPEN positions the monitor must evaluate, as one snapshot"""
        result = await self.session.execute(
            select(Position)
            .where(Position.status == PositionStatus.OPEN)
            .where(Position.auto_exit_enabled == True)  # noqa: E712
            .order_by(Position.id.asc())
        )
        return list(result.scalars().all())

    async def get_open_positions(self, owner_id: int) -> List[Position]:
        """Get all open positions for an owner"""
        result = await self.session.execute(
            select(Position)
            .where(Position.owner_id == owner_id)
            .where(Position.status == PositionStatus.OPEN)
            .order_by(Position.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_owner_positions(self, owner_id: int) -> List[Position]:
        """Every position of an owner regardless of status"""
        result = await self.session.execute(
            select(Position).where(Position.owner_id == owner_id)
        )
        return list(result.scalars().all())

    async def update_price(self, position_id: int, price: float) -> bool:
        """Record the last observed price of an open position"""
        result = await self.session.execute(
            update(Position)
            .where(Position.id == position_id)
            .where(Position.status == PositionStatus.OPEN)
            .values(current_price=price)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def update_highest_price(self, position_id: int, price: float) -> bool:
        """
        Move the best-seen price only in the profitable direction
        (up for LONG, down for SHORT). Returns False if nothing changed.
        """
        improves = or_(
            and_(
                Position.side == PositionSide.LONG,
                or_(Position.highest_price.is_(None), Position.highest_price < price),
            ),
            and_(
                Position.side == PositionSide.SHORT,
                or_(Position.highest_price.is_(None), Position.highest_price > price),
            ),
        )
        result = await self.session.execute(
            update(Position)
            .where(Position.id == position_id)
            .where(Position.status == PositionStatus.OPEN)
            .where(improves)
            .values(highest_price=price)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def claim_for_closing(self, position_id: int) -> bool:
        """
        OPEN -> CLOSING in one conditional UPDATE. Only the caller that gets
        True may place the exit order.
        """
        result = await self.session.execute(
            update(Position)
            .where(Position.id == position_id)
            .where(Position.status == PositionStatus.OPEN)
            .values(status=PositionStatus.CLOSING)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def release_claim(self, position_id: int) -> bool:
        """CLOSING -> OPEN after an exit order that certainly did not execute"""
        result = await self.session.execute(
            update(Position)
            .where(Position.id == position_id)
            .where(Position.status == PositionStatus.CLOSING)
            .values(status=PositionStatus.OPEN)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def close_position(
        self,
        position_id: int,
        close_price: float,
        pnl: float,
        pnl_percent: float,
        reason: Optional[ExitReason] = None,
        exit_order_id: Optional[str] = None,
        fill_price: Optional[float] = None
    ) -> CloseResult:
        """
        Write the closed state in a single conditional UPDATE.
        Only an OPEN or CLOSING row is touched, so a second close is a no-op.
        """
        result = await self.session.execute(
            update(Position)
            .where(Position.id == position_id)
            .where(Position.status.in_([PositionStatus.OPEN, PositionStatus.CLOSING]))
            .values(
                status=PositionStatus.CLOSED,
                close_price=close_price,
                current_price=close_price,
                pnl_absolute=pnl,
                pnl_percent=pnl_percent,
                close_reason=reason,
                exit_order_id=exit_order_id,
                fill_price=fill_price,
                closed_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
        if result.rowcount > 0:
            return CloseResult.CLOSED
        return CloseResult.ALREADY_CLOSED

    async def cancel_position(self, position_id: int) -> bool:
        """OPEN -> CANCELLED (no exit order is placed)"""
        result = await self.session.execute(
            update(Position)
            .where(Position.id == position_id)
            .where(Position.status == PositionStatus.OPEN)
            .values(status=PositionStatus.CANCELLED, auto_exit_enabled=False, closed_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def update_exit_rules(self, position_id: int, **values) -> Optional[Position]:
        """
        Set or clear exit-rule columns of an OPEN position.
        None is written through so rules can be cleared.
        """
        allowed = {
            "take_profit_price", "stop_loss_price", "trailing_stop_percent",
            "auto_exit_enabled", "highest_price",
        }
        unknown = set(values) - allowed
        if unknown:
            raise ValueError(f"Not an exit-rule column: {sorted(unknown)}")

        result = await self.session.execute(
            update(Position)
            .where(Position.id == position_id)
            .where(Position.status == PositionStatus.OPEN)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.session.flush()
        if result.rowcount == 0:
            return None
        return await self.get_by_id(position_id)

    async def increment_exit_failures(self, position_id: int) -> int:
        """Count a failed exit attempt; returns the consecutive total"""
        await self.session.execute(
            update(Position)
            .where(Position.id == position_id)
            .values(exit_failure_count=Position.exit_failure_count + 1)
            .execution_options(synchronize_session=False)
        )
        position = await self.get_by_id(position_id)
        return position.exit_failure_count if position else 0

    async def reset_exit_failures(self, position_id: int) -> None:
        """End a failure streak once the exit is no longer triggered"""
        await self.session.execute(
            update(Position)
            .where(Position.id == position_id)
            .values(exit_failure_count=0)
            .execution_options(synchronize_session=False)
        )

    async def get_portfolio_stats(self, owner_id: int) -> dict:
        """Aggregate open exposure and realized results for an owner"""
        positions = await self.get_owner_positions(owner_id)

        open_positions = [p for p in positions if p.status == PositionStatus.OPEN]
        closed_positions = [p for p in positions if p.status == PositionStatus.CLOSED]

        total_pnl = sum(p.pnl_absolute or 0 for p in closed_positions)
        winning = len([p for p in closed_positions if (p.pnl_absolute or 0) > 0])
        losing = len([p for p in closed_positions if (p.pnl_absolute or 0) < 0])
        win_rate = (winning / len(closed_positions) * 100) if closed_positions else 0.0

        return {
            "total_positions": len(positions),
            "open_positions": len(open_positions),
            "closed_positions": len(closed_positions),
            "open_value": sum(p.position_value for p in open_positions),
            "unrealized_pnl": sum(p.unrealized_pnl for p in open_positions),
            "total_pnl": total_pnl,
            "winning_positions": winning,
            "losing_positions": losing,
            "win_rate": win_rate,
            "average_pnl": (total_pnl / len(closed_positions)) if closed_positions else 0.0,
        }
