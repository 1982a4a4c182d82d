"""
SolBridge - Credential Repository
"""
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .base import BaseRepository
from models.credential import ExchangeAccount, SolanaWallet


class CredentialRepository(BaseRepository[ExchangeAccount]):
    """Read access to the exchange accounts and wallets of an owner"""

    def __init__(self, session: AsyncSession):
        super().__init__(ExchangeAccount, session)

    async def get_exchange_account(self, owner_id: int) -> Optional[ExchangeAccount]:
        """Most recently added active exchange account"""
        result = await self.session.execute(
            select(ExchangeAccount)
            .where(ExchangeAccount.owner_id == owner_id)
            .where(ExchangeAccount.is_active == True)  # noqa: E712
            .order_by(ExchangeAccount.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_active_wallet(self, owner_id: int) -> Optional[SolanaWallet]:
        """The wallet currently selected for DEX trading"""
        result = await self.session.execute(
            select(SolanaWallet)
            .where(SolanaWallet.owner_id == owner_id)
            .where(SolanaWallet.is_active == True)  # noqa: E712
            .order_by(SolanaWallet.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
