"""
SolBridge - Price Resolver
One price lookup for both venues: token oracles for DEX, the owner's
exchange session for CEX. Every lookup is bounded by a timeout.
"""
from typing import Any, List, Optional, Sequence
import asyncio
import logging

from core.exceptions import PriceUnavailableError, AuthRequiredError, ExchangeConnectionError
from models.position import Venue
from services.dex.oracles import TokenPriceOracle
from services.exchange.sessions import ExchangeSessionCache

logger = logging.getLogger(__name__)


class PriceOracleChain:
    """
    Ordered fallback over token price oracles.
    The first oracle that returns a positive price wins; errors and empty
    answers both mean "try the next one".
    """

    def __init__(self, oracles: Sequence[TokenPriceOracle]):
        if not oracles:
            raise ValueError("PriceOracleChain needs at least one oracle")
        self.oracles: List[TokenPriceOracle] = list(oracles)

    async def get_price(self, token_address: str) -> float:
        failures = []
        for oracle in self.oracles:
            try:
                price = await oracle.get_token_price(token_address)
            except Exception as e:
                failures.append(f"{oracle.name}: {e}")
                logger.debug(f"{oracle.name} failed for {token_address}: {e}")
                continue

            if price and price > 0:
                return price
            failures.append(f"{oracle.name}: no data")

        raise PriceUnavailableError(token_address, "; ".join(failures))


class PriceResolver:
    """Resolves the current price of a position"""

    def __init__(
        self,
        dex_prices: PriceOracleChain,
        exchange_sessions: ExchangeSessionCache,
        timeout: float = 15.0
    ):
        self.dex_prices = dex_prices
        self.exchange_sessions = exchange_sessions
        self.timeout = timeout

    async def resolve_price(self, position: Any) -> float:
        """
        Raises PriceUnavailableError or AuthRequiredError; both mean
        "skip this position for this cycle".
        """
        return await self.get_price(position.venue, position.instrument, position.owner_id)

    async def get_price(self, venue: Venue, identifier: str, owner_id: Optional[int] = None) -> float:
        try:
            return await asyncio.wait_for(
                self._fetch(venue, identifier, owner_id),
                timeout=self.timeout
            )
        except asyncio.TimeoutError:
            raise PriceUnavailableError(identifier, f"timed out after {self.timeout}s")

    async def _fetch(self, venue: Venue, identifier: str, owner_id: Optional[int]) -> float:
        if venue == Venue.DEX:
            return await self.dex_prices.get_price(identifier)

        if owner_id is None:
            raise ValueError("CEX prices require the owner's exchange session")

        try:
            exchange = await self.exchange_sessions.get(owner_id)
        except ExchangeConnectionError as e:
            raise PriceUnavailableError(identifier, e.message)

        try:
            ticker = await exchange.get_ticker(identifier)
        except AuthRequiredError:
            await self.exchange_sessions.invalidate(owner_id)
            raise
        except Exception as e:
            raise PriceUnavailableError(identifier, str(e))

        if ticker.last_price <= 0:
            raise PriceUnavailableError(identifier, "ticker has no last price")
        return ticker.last_price
