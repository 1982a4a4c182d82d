"""
SolBridge - Exchange Session Cache
Authenticated CEX sessions keyed by owner id, with expiry.
"""
from typing import Callable, Dict, Optional, Tuple
import asyncio
import logging
import time

from .base import BaseExchange
from .ccxt_exchange import CcxtExchange
from core.exceptions import AuthRequiredError
from db.repositories.base import RepositoryScope
from db.repositories.credential import CredentialRepository

logger = logging.getLogger(__name__)

ExchangeFactory = Callable[..., BaseExchange]


class ExchangeSessionCache:
    """
    Creates one exchange session per owner from stored credentials and
    reuses it until `ttl_seconds` elapse. Injected into the price resolver
    and the execution adapter instead of living in module globals.
    """

    def __init__(
        self,
        credentials: RepositoryScope[CredentialRepository],
        ttl_seconds: float = 600,
        testnet: bool = False,
        exchange_factory: ExchangeFactory = CcxtExchange,
        clock: Callable[[], float] = time.monotonic
    ):
        self.credentials = credentials
        self.ttl_seconds = ttl_seconds
        self.testnet = testnet
        self.exchange_factory = exchange_factory
        self._clock = clock
        self._sessions: Dict[int, Tuple[BaseExchange, float]] = {}
        self._locks: Dict[int, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def get(self, owner_id: int) -> BaseExchange:
        """Return a connected session, raising AuthRequiredError if the owner has no keys"""
        lock = self._locks.setdefault(owner_id, asyncio.Lock())
        async with lock:
            cached = self._sessions.get(owner_id)
            if cached and cached[1] > self._clock():
                return cached[0]
            if cached:
                await self._drop(owner_id)

            exchange = await self._open(owner_id)
            self._sessions[owner_id] = (exchange, self._clock() + self.ttl_seconds)
            return exchange

    async def invalidate(self, owner_id: int) -> None:
        """Forget an owner's session (e.g. after an authentication error)"""
        await self._drop(owner_id)

    async def close_all(self) -> None:
        for owner_id in list(self._sessions):
            await self._drop(owner_id)

    async def _open(self, owner_id: int) -> BaseExchange:
        async with self.credentials() as repo:
            account = await repo.get_exchange_account(owner_id)

        if not account:
            raise AuthRequiredError(owner_id)

        exchange = self.exchange_factory(
            exchange_id=account.exchange,
            api_key=account.api_key,
            api_secret=account.api_secret,
            owner_id=owner_id,
            testnet=self.testnet
        )
        await exchange.connect()
        logger.info(f"Opened {exchange.name} session for owner {owner_id}")
        return exchange

    async def _drop(self, owner_id: int) -> None:
        cached: Optional[Tuple[BaseExchange, float]] = self._sessions.pop(owner_id, None)
        if cached:
            try:
                await cached[0].disconnect()
            except Exception as e:
                logger.warning(f"Error closing exchange session for owner {owner_id}: {e}")
