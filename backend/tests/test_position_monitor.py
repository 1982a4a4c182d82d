"""
Position monitor: failure isolation, in-flight serialization and
best-price tracking across cycles.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.exceptions import PriceUnavailableError, AuthRequiredError
from engine.closure import ClosurePipeline
from engine.position_monitor import PositionMonitor
from models.position import ExitReason, PositionStatus
from conftest import FakePositionScope, make_position


def _resolver(prices):
    """Price resolver returning prices[id], raising if the value is an exception"""
    resolver = MagicMock()

    async def resolve(position):
        value = prices[position.id]
        if isinstance(value, Exception):
            raise value
        return value

    resolver.resolve_price = AsyncMock(side_effect=resolve)
    return resolver


@pytest.fixture
def build_monitor(mock_executor, mock_notifier):
    def build(scope, prices, **kwargs):
        pipeline = ClosurePipeline(scope, mock_executor, mock_notifier)
        return PositionMonitor(scope, _resolver(prices), pipeline, interval_seconds=0.01, **kwargs)
    return build


class TestCycle:
    async def test_one_failing_oracle_does_not_block_others(self, build_monitor, mock_executor):
        scope = FakePositionScope([
            make_position(id=i, stop_loss_price=90.0) for i in range(1, 6)
        ])
        prices = {i: 85.0 for i in range(1, 6)}
        prices[3] = PriceUnavailableError("BTC/USDT", "oracle down")
        monitor = build_monitor(scope, prices)

        summary = await monitor.run_cycle()

        assert summary.positions == 5
        assert summary.price_unavailable == 1
        assert summary.closed == 4
        assert scope[3]["status"] == PositionStatus.OPEN
        for i in (1, 2, 4, 5):
            assert scope[i]["status"] == PositionStatus.CLOSED
            assert scope[i]["close_reason"] == ExitReason.STOP_LOSS
        assert mock_executor.execute_exit.await_count == 4

    async def test_unexpected_error_is_isolated(self, build_monitor):
        scope = FakePositionScope([
            make_position(id=1, take_profit_price=110.0),
            make_position(id=2, take_profit_price=110.0),
        ])
        monitor = build_monitor(scope, {1: RuntimeError("boom"), 2: 120.0})

        summary = await monitor.run_cycle()

        assert summary.errors == 1
        assert summary.closed == 1
        assert scope[2]["status"] == PositionStatus.CLOSED

    async def test_auth_required_is_a_skip(self, build_monitor):
        scope = FakePositionScope([make_position(stop_loss_price=90.0)])
        monitor = build_monitor(scope, {1: AuthRequiredError(42)})

        summary = await monitor.run_cycle()

        assert summary.price_unavailable == 1
        assert scope[1]["status"] == PositionStatus.OPEN

    async def test_failure_streak_ends_when_exit_no_longer_triggers(self, build_monitor):
        scope = FakePositionScope([make_position(stop_loss_price=90.0, exit_failure_count=2)])
        monitor = build_monitor(scope, {1: 95.0})

        summary = await monitor.run_cycle()

        assert summary.evaluated == 1
        assert scope[1]["exit_failure_count"] == 0

    async def test_gap_closes_at_observed_price(self, build_monitor, mock_notifier):
        scope = FakePositionScope([
            make_position(take_profit_price=110.0, stop_loss_price=90.0, current_price=95.0)
        ])
        monitor = build_monitor(scope, {1: 115.0})

        await monitor.run_cycle()

        assert scope[1]["close_reason"] == ExitReason.TAKE_PROFIT
        assert scope[1]["close_price"] == 115.0
        assert scope[1]["pnl_absolute"] == pytest.approx(15.0)

    async def test_price_recorded_without_trigger(self, build_monitor, mock_executor):
        scope = FakePositionScope([make_position(take_profit_price=110.0)])
        monitor = build_monitor(scope, {1: 105.0})

        summary = await monitor.run_cycle()

        assert summary.evaluated == 1
        assert summary.closed == 0
        assert scope[1]["current_price"] == 105.0
        mock_executor.execute_exit.assert_not_awaited()

    async def test_disabled_and_closed_positions_ignored(self, build_monitor):
        scope = FakePositionScope([
            make_position(id=1, auto_exit_enabled=False, stop_loss_price=90.0),
            make_position(id=2, status=PositionStatus.CLOSED, stop_loss_price=90.0),
        ])
        monitor = build_monitor(scope, {1: 50.0, 2: 50.0})

        summary = await monitor.run_cycle()

        assert summary.positions == 0


class TestTrailing:
    async def test_highest_price_never_decreases(self, build_monitor):
        scope = FakePositionScope([make_position(trailing_stop_percent=10.0)])
        prices = {1: 0.0}
        monitor = build_monitor(scope, prices)

        seen = []
        for price in (100.0, 120.0, 115.0, 130.0, 125.0):
            prices[1] = price
            await monitor.run_cycle()
            seen.append(scope[1]["highest_price"])

        assert seen == [100.0, 120.0, 120.0, 130.0, 130.0]
        assert scope[1]["status"] == PositionStatus.OPEN

    async def test_closes_when_price_reaches_floor(self, build_monitor):
        scope = FakePositionScope([make_position(trailing_stop_percent=10.0, highest_price=200.0)])
        prices = {1: 185.0}
        monitor = build_monitor(scope, prices)

        await monitor.run_cycle()
        assert scope[1]["status"] == PositionStatus.OPEN

        prices[1] = 180.0
        await monitor.run_cycle()
        assert scope[1]["status"] == PositionStatus.CLOSED
        assert scope[1]["close_reason"] == ExitReason.TRAILING_STOP


class TestInFlight:
    async def test_overlapping_cycle_skips_busy_position(self, build_monitor, mock_executor):
        scope = FakePositionScope([make_position(stop_loss_price=90.0)])
        release = asyncio.Event()
        started = asyncio.Event()

        resolver = MagicMock()

        async def slow_price(position):
            started.set()
            await release.wait()
            return 80.0

        resolver.resolve_price = AsyncMock(side_effect=slow_price)
        monitor = build_monitor(scope, {})
        monitor.price_resolver = resolver

        first = asyncio.create_task(monitor.run_cycle())
        await started.wait()

        second = await monitor.run_cycle()
        assert second.skipped_in_flight == 1
        assert second.closed == 0

        release.set()
        summary = await first
        assert summary.closed == 1
        assert mock_executor.execute_exit.await_count == 1
        assert monitor.get_status().in_flight == 0


class TestLoop:
    async def test_loop_survives_cycle_errors(self, build_monitor):
        scope = FakePositionScope()
        monitor = build_monitor(scope, {})
        calls = []

        async def flaky_cycle():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("db down")

        monitor.run_cycle = AsyncMock(side_effect=flaky_cycle)

        monitor.start_background()
        await asyncio.sleep(0.05)
        await monitor.stop()

        assert monitor.run_cycle.await_count >= 2
        assert not monitor.get_status().is_running

    async def test_status_reports_last_cycle(self, build_monitor):
        scope = FakePositionScope([make_position(take_profit_price=110.0)])
        monitor = build_monitor(scope, {1: 100.0}, max_concurrency=3)

        await monitor.run_cycle()
        status = monitor.get_status()

        assert status.cycles_completed == 1
        assert status.max_concurrency == 3
        assert status.last_cycle.evaluated == 1
        assert status.quarantined == 0
