"""
SolBridge - Base Exchange Interface
Abstract base class for CEX implementations
"""
from abc import ABC, abstractmethod
from typing import Optional
from dataclasses import dataclass
from enum import Enum

from models.position import PositionSide


class OrderSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass
class OrderResult:
    """Result of an order execution"""
    success: bool
    order_id: Optional[str]
    symbol: str
    side: OrderSide
    quantity: float
    filled_quantity: Optional[float]
    average_price: Optional[float]
    status: str
    error: Optional[str] = None
    outcome_unknown: bool = False  # Request may have reached the exchange


@dataclass
class Ticker:
    """Price ticker"""
    symbol: str
    last_price: float
    bid: float
    ask: float


class BaseExchange(ABC):
    """
    Abstract base class for exchange implementations.
    One instance represents one owner's authenticated session.
    """

    def __init__(self, api_key: Optional[str] = None, api_secret: Optional[str] = None):
        self.api_key = api_key
        self.api_secret = api_secret

    @property
    @abstractmethod
    def name(self) -> str:
        """Exchange name"""
        pass

    @abstractmethod
    async def connect(self) -> bool:
        """Initialize connection to exchange"""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection"""
        pass

    @abstractmethod
    async def get_ticker(self, symbol: str) -> Ticker:
        """Get current price ticker"""
        pass

    @abstractmethod
    async def place_market_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float
    ) -> OrderResult:
        """Place a market order"""
        pass

    async def close_position(self, symbol: str, quantity: float, side: PositionSide) -> OrderResult:
        """Close a position by placing the opposite market order"""
        close_side = OrderSide.SELL if side == PositionSide.LONG else OrderSide.BUY
        return await self.place_market_order(symbol, close_side, quantity)
