"""
SolBridge - Position Schemas
Pydantic models for position API requests/responses and monitor snapshots
"""
from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from datetime import datetime

from models.position import Venue, PositionSide, PositionStatus, ExitReason


class PositionSnapshot(BaseModel):
    """
    Read-only copy of a position taken at the start of a monitor cycle.
    The monitor derives updated copies instead of mutating ORM rows.
    """
    id: int
    owner_id: int
    venue: Venue
    symbol: str
    token_address: Optional[str] = None
    token_decimals: int = 9
    exchange: Optional[str] = None
    slippage_percent: float = 1.0
    side: PositionSide
    amount: float
    entry_price: float
    current_price: Optional[float] = None
    highest_price: Optional[float] = None
    take_profit_price: Optional[float] = None
    stop_loss_price: Optional[float] = None
    trailing_stop_percent: Optional[float] = None
    auto_exit_enabled: bool = False
    status: PositionStatus = PositionStatus.OPEN
    exit_failure_count: int = 0

    model_config = {"from_attributes": True, "frozen": True}

    @property
    def instrument(self) -> str:
        if self.venue == Venue.DEX:
            return self.token_address or self.symbol
        return self.symbol


class PositionCreate(BaseModel):
    """A filled entry order recorded as an OPEN position"""
    owner_id: int
    venue: Venue
    symbol: str = Field(..., examples=["BTC/USDT", "BONK"])
    side: PositionSide
    amount: float = Field(..., gt=0)
    entry_price: float = Field(..., gt=0)

    exchange: Optional[str] = Field(default=None, examples=["binance"])
    token_address: Optional[str] = None
    token_decimals: int = Field(default=9, ge=0, le=18)
    dex: Optional[str] = Field(default=None, examples=["jupiter"])
    slippage_percent: float = Field(default=1.0, gt=0, le=50)
    entry_order_id: Optional[str] = None

    take_profit_price: Optional[float] = Field(default=None, gt=0)
    stop_loss_price: Optional[float] = Field(default=None, gt=0)
    trailing_stop_percent: Optional[float] = Field(default=None, gt=0, lt=100)
    auto_exit_enabled: bool = False

    @model_validator(mode="after")
    def check_venue_fields(self) -> "PositionCreate":
        if self.venue == Venue.DEX and not self.token_address:
            raise ValueError("DEX positions require token_address")
        if self.venue == Venue.CEX and not self.exchange:
            raise ValueError("CEX positions require exchange")
        return self


class PositionResponse(BaseModel):
    """Position response model"""
    id: int
    owner_id: int
    venue: Venue
    symbol: str
    token_address: Optional[str]
    exchange: Optional[str]
    side: PositionSide

    amount: float
    entry_price: float
    current_price: Optional[float]
    highest_price: Optional[float]

    take_profit_price: Optional[float]
    stop_loss_price: Optional[float]
    trailing_stop_percent: Optional[float]
    auto_exit_enabled: bool

    status: PositionStatus
    close_price: Optional[float]
    pnl_absolute: Optional[float]
    pnl_percent: Optional[float]
    close_reason: Optional[ExitReason]
    exit_order_id: Optional[str]
    closed_at: Optional[datetime]

    # Calculated fields
    unrealized_pnl: float
    unrealized_pnl_percent: float
    position_value: float

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class PositionListResponse(BaseModel):
    """List of open positions"""
    positions: List[PositionResponse]
    total_value: float
    total_unrealized_pnl: float


class PriceTargetUpdate(BaseModel):
    """Take profit or stop loss, as an absolute price or a percent from entry"""
    price: Optional[float] = Field(default=None, gt=0)
    percent: Optional[float] = Field(default=None, gt=0)

    @model_validator(mode="after")
    def exactly_one(self) -> "PriceTargetUpdate":
        if (self.price is None) == (self.percent is None):
            raise ValueError("Provide exactly one of price or percent")
        return self


class TrailingStopUpdate(BaseModel):
    """Trailing stop distance in percent"""
    percent: float = Field(..., gt=0, lt=100)


class AutoExitUpdate(BaseModel):
    enabled: bool


class PortfolioStats(BaseModel):
    """Aggregated results for one owner"""
    total_positions: int
    open_positions: int
    closed_positions: int
    open_value: float
    unrealized_pnl: float
    total_pnl: float
    winning_positions: int
    losing_positions: int
    win_rate: float
    average_pnl: float
