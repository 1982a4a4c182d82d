"""
SolBridge - Position Model
Trade positions opened on a CEX or a Solana DEX, with automated exit rules
"""
from sqlalchemy import (
    Column, String, Float, Integer, BigInteger, Boolean, DateTime,
    Enum as SQLEnum, Index,
)
import enum

from db.base import Base


class Venue(str, enum.Enum):
    """Where the position was opened"""
    CEX = "CEX"
    DEX = "DEX"


class PositionSide(str, enum.Enum):
    """Position side (buy opens LONG, sell opens SHORT)"""
    LONG = "LONG"
    SHORT = "SHORT"


class PositionStatus(str, enum.Enum):
    """
    Lifecycle status; CLOSED and CANCELLED are terminal.
    CLOSING marks a position whose exit order is being placed. A position
    left in CLOSING needs reconciliation against the venue.
    """
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"


class ExitReason(str, enum.Enum):
    """Why the monitor closed a position"""
    TAKE_PROFIT = "TAKE_PROFIT"
    STOP_LOSS = "STOP_LOSS"
    TRAILING_STOP = "TRAILING_STOP"

    @property
    def label(self) -> str:
        return {
            ExitReason.TAKE_PROFIT: "Take Profit Hit",
            ExitReason.STOP_LOSS: "Stop Loss Hit",
            ExitReason.TRAILING_STOP: "Trailing Stop Loss Hit",
        }[self]


class Position(Base):
    """
    A trade record with entry terms and optional automated exit rules.

    `amount` is always the base-asset quantity (tokens for DEX positions).
    `highest_price` is the most favorable price seen while open: the highest
    for LONG, the lowest for SHORT. It is only maintained when a trailing
    stop is configured.
    """

    # Telegram user id of the owner
    owner_id = Column(BigInteger, nullable=False, index=True)

    # Instrument
    venue = Column(SQLEnum(Venue), nullable=False)
    symbol = Column(String(50), nullable=False)  # e.g. "BTC/USDT" or token symbol
    token_address = Column(String(64), nullable=True)  # DEX mint address
    token_decimals = Column(Integer, default=9, nullable=False)
    exchange = Column(String(20), nullable=True)  # binance, bybit, ... (CEX)
    dex = Column(String(20), nullable=True)  # jupiter, raydium, ... (DEX)
    slippage_percent = Column(Float, default=1.0, nullable=False)

    # Entry terms (immutable once opened)
    side = Column(SQLEnum(PositionSide), nullable=False)
    amount = Column(Float, nullable=False)
    entry_price = Column(Float, nullable=False)
    entry_order_id = Column(String(128), nullable=True)

    # Monitor-maintained
    current_price = Column(Float, nullable=True)
    highest_price = Column(Float, nullable=True)

    # Exit rules
    take_profit_price = Column(Float, nullable=True)
    stop_loss_price = Column(Float, nullable=True)
    trailing_stop_percent = Column(Float, nullable=True)
    auto_exit_enabled = Column(Boolean, default=False, nullable=False)
    exit_failure_count = Column(Integer, default=0, nullable=False)

    # Status
    status = Column(SQLEnum(PositionStatus), default=PositionStatus.OPEN, nullable=False, index=True)

    # Closure (written exactly once)
    close_price = Column(Float, nullable=True)
    fill_price = Column(Float, nullable=True)
    pnl_absolute = Column(Float, nullable=True)
    pnl_percent = Column(Float, nullable=True)
    close_reason = Column(SQLEnum(ExitReason), nullable=True)
    exit_order_id = Column(String(128), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('ix_position_status_auto_exit', 'status', 'auto_exit_enabled'),
    )

    def __repr__(self) -> str:
        return f"<Position(id={self.id}, {self.venue} {self.symbol} {self.side} x{self.amount}, {self.status})>"

    @property
    def instrument(self) -> str:
        """Identifier the venue prices and trades by"""
        if self.venue == Venue.DEX:
            return self.token_address or self.symbol
        return self.symbol

    @property
    def unrealized_pnl(self) -> float:
        """Calculate unrealized PnL"""
        if not self.current_price:
            return 0.0

        price_diff = self.current_price - self.entry_price
        if self.side == PositionSide.SHORT:
            price_diff = -price_diff

        return price_diff * self.amount

    @property
    def unrealized_pnl_percent(self) -> float:
        """Calculate unrealized PnL as percentage"""
        if not self.entry_price or not self.current_price:
            return 0.0

        price_diff = self.current_price - self.entry_price
        if self.side == PositionSide.SHORT:
            price_diff = -price_diff

        return (price_diff / self.entry_price) * 100

    @property
    def position_value(self) -> float:
        """Current position value in quote currency"""
        price = self.current_price or self.entry_price
        return self.amount * price
