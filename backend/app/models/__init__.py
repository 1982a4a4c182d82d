# Models module initialization
from .position import Position, Venue, PositionSide, PositionStatus, ExitReason
from .credential import ExchangeAccount, SolanaWallet

__all__ = [
    "Position", "Venue", "PositionSide", "PositionStatus", "ExitReason",
    "ExchangeAccount", "SolanaWallet",
]
