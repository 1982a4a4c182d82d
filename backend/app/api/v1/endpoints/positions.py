"""
SolBridge - Positions Endpoints
Record positions and configure their automated exits
"""
from fastapi import APIRouter, status

from api.deps import DbSession, ExitRules, domain_errors
from db.repositories.position import PositionRepository
from schemas.position import (
    PositionCreate, PositionResponse, PositionListResponse,
    PriceTargetUpdate, TrailingStopUpdate, AutoExitUpdate, PortfolioStats,
)

router = APIRouter()


@router.post("/", response_model=PositionResponse, status_code=status.HTTP_201_CREATED)
async def open_position(request: PositionCreate, service: ExitRules):
    """Record a filled entry order as an OPEN position"""
    with domain_errors():
        return await service.open_position(request)


@router.get("/", response_model=PositionListResponse)
async def get_open_positions(owner_id: int, db: DbSession):
    """Get all open positions of an owner"""
    position_repo = PositionRepository(db)
    positions = await position_repo.get_open_positions(owner_id)

    return PositionListResponse(
        positions=[PositionResponse.model_validate(p) for p in positions],
        total_value=sum(p.position_value for p in positions),
        total_unrealized_pnl=sum(p.unrealized_pnl for p in positions)
    )


@router.get("/stats/{owner_id}", response_model=PortfolioStats)
async def get_portfolio_stats(owner_id: int, db: DbSession):
    """Open exposure and realized results of an owner"""
    position_repo = PositionRepository(db)
    return await position_repo.get_portfolio_stats(owner_id)


@router.get("/{position_id}", response_model=PositionResponse)
async def get_position(position_id: int, service: ExitRules):
    """Get specific position details"""
    with domain_errors():
        return await service.get_position(position_id)


@router.put("/{position_id}/take-profit", response_model=PositionResponse)
async def set_take_profit(position_id: int, request: PriceTargetUpdate, service: ExitRules):
    """Set take profit by price or by percent gain from entry"""
    with domain_errors():
        return await service.set_take_profit(position_id, price=request.price, percent=request.percent)


@router.delete("/{position_id}/take-profit", response_model=PositionResponse)
async def clear_take_profit(position_id: int, service: ExitRules):
    with domain_errors():
        return await service.clear_take_profit(position_id)


@router.put("/{position_id}/stop-loss", response_model=PositionResponse)
async def set_stop_loss(position_id: int, request: PriceTargetUpdate, service: ExitRules):
    """Set stop loss by price or by percent loss from entry"""
    with domain_errors():
        return await service.set_stop_loss(position_id, price=request.price, percent=request.percent)


@router.delete("/{position_id}/stop-loss", response_model=PositionResponse)
async def clear_stop_loss(position_id: int, service: ExitRules):
    with domain_errors():
        return await service.clear_stop_loss(position_id)


@router.put("/{position_id}/trailing-stop", response_model=PositionResponse)
async def set_trailing_stop(position_id: int, request: TrailingStopUpdate, service: ExitRules):
    """Trail the best price seen by a percentage"""
    with domain_errors():
        return await service.set_trailing_stop(position_id, request.percent)


@router.delete("/{position_id}/trailing-stop", response_model=PositionResponse)
async def clear_trailing_stop(position_id: int, service: ExitRules):
    with domain_errors():
        return await service.clear_trailing_stop(position_id)


@router.put("/{position_id}/auto-exit", response_model=PositionResponse)
async def set_auto_exit(position_id: int, request: AutoExitUpdate, service: ExitRules):
    """Turn monitoring of this position on or off"""
    with domain_errors():
        return await service.set_auto_exit(position_id, request.enabled)


@router.post("/{position_id}/cancel", response_model=PositionResponse)
async def cancel_position(position_id: int, service: ExitRules):
    """Stop tracking a position without placing an exit order"""
    with domain_errors():
        return await service.cancel_position(position_id)
