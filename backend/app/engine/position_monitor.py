"""
SolBridge - Position Monitor
Background loop that watches every OPEN auto-exit position and hands
triggered exits to the closure pipeline.

Each cycle works on one snapshot of the position set. Positions are
processed independently with bounded concurrency: a failure on one
position is logged and never affects the others or the loop itself.
"""
import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional, Set

from core.exceptions import PriceResolutionError
from db.repositories.base import RepositoryScope
from db.repositories.position import PositionRepository
from engine.closure import ClosurePipeline
from engine.exit_rules import evaluate, next_best_price
from schemas.monitor import CycleSummary, MonitorStatus
from schemas.position import PositionSnapshot
from services.price_resolver import PriceResolver

logger = logging.getLogger(__name__)

# Per-position outcomes counted into CycleSummary
EVALUATED = "evaluated"
PRICE_UNAVAILABLE = "price_unavailable"
CLOSED = "closed"
CLOSE_FAILED = "close_failed"
ERROR = "errors"


class PositionMonitor:
    """Polling driver for automated take profit / stop loss / trailing exits"""

    def __init__(
        self,
        positions: RepositoryScope[PositionRepository],
        price_resolver: PriceResolver,
        pipeline: ClosurePipeline,
        interval_seconds: float = 10.0,
        max_concurrency: int = 8
    ):
        self.positions = positions
        self.price_resolver = price_resolver
        self.pipeline = pipeline
        self.interval_seconds = interval_seconds
        self.max_concurrency = max(1, max_concurrency)

        self.is_running = False
        self.cycles_completed = 0
        self.last_cycle: Optional[CycleSummary] = None
        self._in_flight: Set[int] = set()
        self._semaphore = asyncio.Semaphore(self.max_concurrency)
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        """Run cycles until stopped"""
        if self.is_running:
            logger.warning("Position monitor already running")
            return

        self.is_running = True
        logger.info(
            f"Position monitor started - interval {self.interval_seconds}s, "
            f"concurrency {self.max_concurrency}"
        )

        while self.is_running:
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Monitor cycle error: {e}", exc_info=True)

            await asyncio.sleep(self.interval_seconds)

    def start_background(self) -> asyncio.Task:
        """Schedule the loop on the running event loop"""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.start())
        return self._task

    async def stop(self):
        """Stop the loop and wait for the current cycle to unwind"""
        self.is_running = False
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Position monitor stopped")

    async def run_cycle(self) -> CycleSummary:
        """One scan over the current OPEN auto-exit positions"""
        started_at = datetime.now(timezone.utc)
        started = time.monotonic()

        async with self.positions() as repo:
            rows = await repo.list_open_auto_exit_positions()
            snapshot = [PositionSnapshot.model_validate(row) for row in rows]

        # Claim ids before any await so an overlapping cycle sees them
        batch: List[PositionSnapshot] = []
        skipped = 0
        for position in snapshot:
            if position.id in self._in_flight:
                skipped += 1
                continue
            self._in_flight.add(position.id)
            batch.append(position)

        if skipped:
            logger.debug(f"Skipped {skipped} positions still in flight from a previous cycle")

        outcomes = await asyncio.gather(*(self._guarded(position) for position in batch))

        summary = CycleSummary(
            started_at=started_at,
            duration_seconds=round(time.monotonic() - started, 3),
            positions=len(snapshot),
            evaluated=sum(1 for o in outcomes if o in (EVALUATED, CLOSED, CLOSE_FAILED)),
            skipped_in_flight=skipped,
            price_unavailable=outcomes.count(PRICE_UNAVAILABLE),
            closed=outcomes.count(CLOSED),
            close_failed=outcomes.count(CLOSE_FAILED),
            errors=outcomes.count(ERROR),
        )
        self.cycles_completed += 1
        self.last_cycle = summary

        if summary.closed or summary.close_failed or summary.errors:
            logger.info(
                f"Monitor cycle: {summary.positions} positions, {summary.closed} closed, "
                f"{summary.close_failed} close failures, {summary.errors} errors"
            )
        else:
            logger.debug(f"Monitor cycle: {summary.positions} positions, nothing triggered")
        return summary

    async def _guarded(self, position: PositionSnapshot) -> str:
        try:
            async with self._semaphore:
                return await self._process(position)
        except PriceResolutionError as e:
            logger.debug(f"Skipping position {position.id} this cycle: {e.message}")
            return PRICE_UNAVAILABLE
        except Exception as e:
            logger.error(f"Error processing position {position.id}: {e}", exc_info=True)
            return ERROR
        finally:
            self._in_flight.discard(position.id)

    async def _process(self, position: PositionSnapshot) -> str:
        """Price, then best-seen update, then evaluation, then closure"""
        price = await self.price_resolver.resolve_price(position)

        best = next_best_price(position, price)
        async with self.positions() as repo:
            await repo.update_price(position.id, price)
            if best is not None:
                await repo.update_highest_price(position.id, best)

        current = position.model_copy(update={
            "current_price": price,
            "highest_price": best if best is not None else position.highest_price,
        })

        decision = evaluate(current, price)
        if not decision.should_close:
            if position.exit_failure_count:
                async with self.positions() as repo:
                    await repo.reset_exit_failures(position.id)
            return EVALUATED

        logger.info(
            f"Position {position.id} triggered {decision.reason.value} at {price} "
            f"(threshold {decision.threshold})"
        )
        result = await self.pipeline.close(current, price, decision.reason)
        return CLOSED if result.closed else CLOSE_FAILED

    def get_status(self) -> MonitorStatus:
        return MonitorStatus(
            is_running=self.is_running,
            message="Position monitor running" if self.is_running else "Position monitor stopped",
            interval_seconds=self.interval_seconds,
            max_concurrency=self.max_concurrency,
            cycles_completed=self.cycles_completed,
            in_flight=len(self._in_flight),
            quarantined=len(self.pipeline.quarantined),
            last_cycle=self.last_cycle,
        )
