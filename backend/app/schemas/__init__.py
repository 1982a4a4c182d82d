# Schemas module initialization
from .position import (
    PositionSnapshot, PositionCreate, PositionResponse, PositionListResponse,
    PriceTargetUpdate, TrailingStopUpdate, AutoExitUpdate, PortfolioStats,
)
from .monitor import CycleSummary, MonitorStatus

__all__ = [
    "PositionSnapshot", "PositionCreate", "PositionResponse", "PositionListResponse",
    "PriceTargetUpdate", "TrailingStopUpdate", "AutoExitUpdate", "PortfolioStats",
    "CycleSummary", "MonitorStatus",
]
