"""
SolBridge - Credential Models
Exchange API keys and Solana wallets used to execute exits on behalf of an owner.
Values are stored as provided by the onboarding layer, which owns encryption.
"""
from sqlalchemy import Column, String, BigInteger, Boolean

from db.base import Base


class ExchangeAccount(Base):
    """CEX API credentials of an owner"""

    owner_id = Column(BigInteger, nullable=False, index=True)
    exchange = Column(String(20), nullable=False)  # binance, bybit, okx, kucoin, gateio, bitget
    api_key = Column(String(255), nullable=False)
    api_secret = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<ExchangeAccount(owner={self.owner_id}, exchange={self.exchange})>"


class SolanaWallet(Base):
    """Solana keypair of an owner (base58 secret key)"""

    owner_id = Column(BigInteger, nullable=False, index=True)
    public_key = Column(String(64), nullable=False)
    private_key = Column(String(128), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<SolanaWallet(owner={self.owner_id}, pubkey={self.public_key})>"
