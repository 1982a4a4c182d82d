"""
Exit-rule configuration: validation when rules are set, not when they fire.
"""
import pytest

from core.exceptions import InvalidExitRuleError, PositionNotFoundError, PositionStateError
from db.repositories.position import PositionRepository
from models.position import PositionSide, PositionStatus, Venue
from schemas.position import PositionCreate
from services.exit_rules import ExitRuleService


@pytest.fixture
async def service(session_factory):
    async with session_factory() as session:
        yield ExitRuleService(PositionRepository(session))
        await session.commit()


async def _open(service, **overrides):
    values = dict(
        owner_id=42, venue=Venue.CEX, symbol="BTC/USDT", exchange="binance",
        side=PositionSide.LONG, amount=1.0, entry_price=100.0,
    )
    values.update(overrides)
    return await service.open_position(PositionCreate(**values))


class TestOpenPosition:
    async def test_without_rules_is_not_monitored(self, service):
        position = await _open(service)

        assert position.status == PositionStatus.OPEN
        assert position.auto_exit_enabled is False

    async def test_rules_enable_monitoring(self, service):
        position = await _open(service, take_profit_price=120.0, stop_loss_price=90.0)

        assert position.auto_exit_enabled is True
        assert position.take_profit_price == 120.0

    async def test_invalid_take_profit_rejected(self, service):
        with pytest.raises(InvalidExitRuleError):
            await _open(service, take_profit_price=95.0)

    def test_dex_needs_token_address(self):
        with pytest.raises(ValueError):
            PositionCreate(owner_id=1, venue=Venue.DEX, symbol="BONK", side=PositionSide.LONG,
                           amount=1.0, entry_price=1.0)


class TestTakeProfitAndStopLoss:
    async def test_take_profit_by_percent(self, service):
        position = await _open(service)

        updated = await service.set_take_profit(position.id, percent=10.0)

        assert updated.take_profit_price == pytest.approx(110.0)
        assert updated.auto_exit_enabled is True

    async def test_short_stop_loss_by_percent(self, service):
        position = await _open(service, side=PositionSide.SHORT)

        updated = await service.set_stop_loss(position.id, percent=5.0)

        assert updated.stop_loss_price == pytest.approx(105.0)

    async def test_take_profit_on_losing_side_rejected(self, service):
        position = await _open(service)

        with pytest.raises(InvalidExitRuleError):
            await service.set_take_profit(position.id, price=90.0)

    async def test_short_stop_loss_below_entry_rejected(self, service):
        position = await _open(service, side=PositionSide.SHORT)

        with pytest.raises(InvalidExitRuleError):
            await service.set_stop_loss(position.id, price=95.0)

    async def test_stop_loss_percent_of_100_rejected(self, service):
        position = await _open(service)

        with pytest.raises(InvalidExitRuleError):
            await service.set_stop_loss(position.id, percent=100.0)

    async def test_price_and_percent_are_exclusive(self, service):
        position = await _open(service)

        with pytest.raises(InvalidExitRuleError):
            await service.set_take_profit(position.id, price=120.0, percent=20.0)
        with pytest.raises(InvalidExitRuleError):
            await service.set_take_profit(position.id)

    async def test_clear(self, service):
        position = await _open(service, take_profit_price=120.0, stop_loss_price=90.0)

        updated = await service.clear_take_profit(position.id)
        updated = await service.clear_stop_loss(position.id)

        assert updated.take_profit_price is None
        assert updated.stop_loss_price is None


class TestTrailingStop:
    @pytest.mark.parametrize("percent", [0, -5, 100, 150])
    async def test_out_of_range_rejected(self, service, percent):
        position = await _open(service)

        with pytest.raises(InvalidExitRuleError):
            await service.set_trailing_stop(position.id, percent)

    async def test_clear_forgets_best_price(self, service):
        position = await _open(service, trailing_stop_percent=10.0)
        await service.positions.update_highest_price(position.id, 150.0)

        updated = await service.clear_trailing_stop(position.id)

        assert updated.trailing_stop_percent is None
        assert updated.highest_price is None


class TestLifecycle:
    async def test_unknown_position(self, service):
        with pytest.raises(PositionNotFoundError):
            await service.set_trailing_stop(999, 5.0)

    async def test_closed_position_is_read_only(self, service):
        position = await _open(service)
        await service.positions.close_position(position.id, close_price=101.0, pnl=1.0, pnl_percent=1.0)

        with pytest.raises(PositionStateError):
            await service.set_take_profit(position.id, price=120.0)

    async def test_cancel(self, service):
        position = await _open(service, stop_loss_price=90.0)

        cancelled = await service.cancel_position(position.id)

        assert cancelled.status == PositionStatus.CANCELLED
        assert cancelled.auto_exit_enabled is False
        with pytest.raises(PositionStateError):
            await service.cancel_position(position.id)

    async def test_toggle_auto_exit(self, service):
        position = await _open(service, stop_loss_price=90.0)

        updated = await service.set_auto_exit(position.id, False)

        assert updated.auto_exit_enabled is False
        assert updated.stop_loss_price == 90.0
