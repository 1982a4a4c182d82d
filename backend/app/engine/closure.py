"""
SolBridge - Closure Pipeline
Executes a triggered exit at most once: lock, claim, execute, persist, notify.

The claim moves the row from OPEN to CLOSING before any order is sent, so
only one worker can execute. An exit that may have reached the venue but
is not stored as closed is never retried: the position is quarantined
and handed to the operator.
"""
from dataclasses import dataclass
from typing import Any, Optional, Set
import enum
import logging

import redis.asyncio as redis

from core.exceptions import ClosurePersistenceError, OrderExecutionError, OrderOutcomeUnknownError
from db.repositories.base import RepositoryScope
from db.repositories.position import PositionRepository, CloseResult
from engine.exit_rules import calculate_pnl
from models.position import ExitReason
from services.execution import OrderExecutionAdapter, ExitFill
from services.locks import PositionLockManager
from services.telegram import (
    TelegramNotifier,
    format_exit_message,
    format_exit_failure_message,
    format_inconsistent_state_alert,
)

logger = logging.getLogger(__name__)


class ClosureStatus(str, enum.Enum):
    """How a closure attempt ended"""
    CLOSED = "CLOSED"
    SKIPPED_NOT_OPEN = "SKIPPED_NOT_OPEN"
    LOCKED = "LOCKED"
    QUARANTINED = "QUARANTINED"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    OUTCOME_UNKNOWN = "OUTCOME_UNKNOWN"
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"


@dataclass
class ClosureResult:
    position_id: int
    status: ClosureStatus
    close_price: Optional[float] = None
    pnl: Optional[float] = None
    pnl_percent: Optional[float] = None
    order_id: Optional[str] = None
    error: Optional[str] = None
    notified: bool = False

    @property
    def closed(self) -> bool:
        return self.status == ClosureStatus.CLOSED


class ClosurePipeline:
    """Turns an exit decision into a closed, notified position"""

    def __init__(
        self,
        positions: RepositoryScope[PositionRepository],
        executor: OrderExecutionAdapter,
        notifier: TelegramNotifier,
        locks: Optional[PositionLockManager] = None,
        failure_alert_threshold: int = 3
    ):
        self.positions = positions
        self.executor = executor
        self.notifier = notifier
        self.locks = locks
        self.failure_alert_threshold = max(1, failure_alert_threshold)
        self.quarantined: Set[int] = set()

    async def close(self, position: Any, close_price: float, reason: ExitReason) -> ClosureResult:
        """
        Close `position` at the observed `close_price`.
        Never raises for venue, storage or notification failures.
        """
        if position.id in self.quarantined:
            return ClosureResult(position.id, ClosureStatus.QUARANTINED)

        if self.locks is None:
            return await self._close_locked(position, close_price, reason)

        try:
            async with self.locks.hold(position.id) as acquired:
                if not acquired:
                    logger.info(f"Position {position.id} is being closed elsewhere or quarantined, skipping")
                    return ClosureResult(position.id, ClosureStatus.LOCKED)
                return await self._close_locked(position, close_price, reason)
        except redis.RedisError as e:
            # Without the lock another worker could close the same position
            logger.warning(f"Position lock unavailable for {position.id}, skipping this cycle: {e}")
            return ClosureResult(position.id, ClosureStatus.LOCKED, error=str(e))

    async def _close_locked(self, position: Any, close_price: float, reason: ExitReason) -> ClosureResult:
        async with self.positions() as repo:
            claimed = await repo.claim_for_closing(position.id)
        if not claimed:
            logger.info(f"Position {position.id} is no longer open, skipping closure")
            return ClosureResult(position.id, ClosureStatus.SKIPPED_NOT_OPEN)

        logger.info(
            f"{reason.label} for position {position.id} ({position.instrument} {position.side.value}) "
            f"at {close_price}"
        )

        try:
            fill = await self.executor.execute_exit(position)
        except OrderOutcomeUnknownError as e:
            # The claim stays in place so no worker sends the order again
            await self._quarantine(position, e.reference, e.message)
            return ClosureResult(
                position.id, ClosureStatus.OUTCOME_UNKNOWN, close_price, order_id=e.reference, error=e.message
            )
        except OrderExecutionError as e:
            await self._record_failure(position, e.message)
            return ClosureResult(position.id, ClosureStatus.EXECUTION_FAILED, close_price, error=e.message)

        pnl, pnl_percent = calculate_pnl(position.side, position.entry_price, close_price, fill.filled_quantity)

        try:
            await self._persist(position, fill, close_price, pnl, pnl_percent, reason)
        except ClosurePersistenceError as e:
            await self._quarantine(position, e.order_id, e.message)
            return ClosureResult(
                position.id,
                ClosureStatus.PERSISTENCE_FAILED,
                close_price=close_price,
                pnl=pnl,
                pnl_percent=pnl_percent,
                order_id=fill.order_id,
                error=e.reason
            )

        logger.info(
            f"Position {position.id} closed: {reason.label}, P&L {pnl:.4f} ({pnl_percent:.2f}%), "
            f"order {fill.order_id}"
        )

        notified = await self.notifier.notify(
            position.owner_id,
            format_exit_message(position, close_price, pnl, pnl_percent, reason.label)
        )
        if not notified:
            logger.warning(f"Position {position.id} closed but the owner was not notified")

        return ClosureResult(
            position.id,
            ClosureStatus.CLOSED,
            close_price=close_price,
            pnl=pnl,
            pnl_percent=pnl_percent,
            order_id=fill.order_id,
            notified=notified
        )

    async def _persist(
        self,
        position: Any,
        fill: ExitFill,
        close_price: float,
        pnl: float,
        pnl_percent: float,
        reason: ExitReason
    ) -> None:
        """Store the closed state, raising ClosurePersistenceError if it did not stick"""
        try:
            async with self.positions() as repo:
                result = await repo.close_position(
                    position.id,
                    close_price=close_price,
                    pnl=pnl,
                    pnl_percent=pnl_percent,
                    reason=reason,
                    exit_order_id=fill.order_id,
                    fill_price=fill.filled_price
                )
        except Exception as e:
            raise ClosurePersistenceError(position.id, fill.order_id, str(e) or type(e).__name__)

        if result != CloseResult.CLOSED:
            # We executed the order, yet something else closed the record first
            raise ClosurePersistenceError(
                position.id, fill.order_id,
                "position was already closed by another writer after our exit executed"
            )

    async def _record_failure(self, position: Any, error: str) -> None:
        """Reopen the position, count the failed attempt and escalate every N consecutive failures"""
        logger.error(f"Exit for position {position.id} failed, position stays open: {error}")

        try:
            async with self.positions() as repo:
                await repo.release_claim(position.id)
                attempts = await repo.increment_exit_failures(position.id)
        except Exception as e:
            logger.error(f"Could not reopen position {position.id} after a failed exit: {e}")
            return

        if attempts and attempts % self.failure_alert_threshold == 0:
            logger.warning(f"Position {position.id} has failed to exit {attempts} times in a row, escalating")
            message = format_exit_failure_message(position, attempts, error)
            await self.notifier.notify(position.owner_id, message)
            await self.notifier.alert_operator(message)

    async def _quarantine(self, position: Any, order_id: Optional[str], error: str) -> None:
        self.quarantined.add(position.id)
        logger.critical(
            f"INCONSISTENT STATE: position {position.id} (order {order_id}) may have exited on the venue "
            f"but is not stored as closed: {error}. Quarantined for manual reconciliation."
        )

        if self.locks is not None:
            try:
                await self.locks.quarantine(position.id, f"order={order_id}; {error}")
            except redis.RedisError as e:
                logger.error(f"Could not store quarantine marker for position {position.id}: {e}")

        await self.notifier.alert_operator(format_inconsistent_state_alert(position, order_id, error))
