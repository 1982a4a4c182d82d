"""
SolBridge - Token Price Oracles
Price sources for Solana tokens, tried in order by PriceOracleChain.
"""
from abc import ABC, abstractmethod
from typing import Optional, List, Dict, Any
import logging

import httpx

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "SolBridge/1.0",
}


class TokenPriceOracle(ABC):
    """One strategy for pricing a token by mint address"""

    name: str = "oracle"

    @abstractmethod
    async def get_token_price(self, token_address: str) -> Optional[float]:
        """USD price, or None when the source has no data for the token"""
        pass


def pick_solana_pair(pairs: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Most liquid Solana pair from a DexScreener response"""
    solana_pairs = [p for p in pairs or [] if p.get("chainId") == "solana"]
    if not solana_pairs:
        return None
    return max(
        solana_pairs,
        key=lambda p: float((p.get("liquidity") or {}).get("usd") or 0)
    )


class DexScreenerTokenOracle(TokenPriceOracle):
    """DexScreener /tokens endpoint (pairs indexed by base token)"""

    name = "dexscreener"
    path = "/tokens/{address}"

    def __init__(self, client: httpx.AsyncClient, base_url: str):
        self.client = client
        self.base_url = base_url.rstrip("/")

    def _url(self, token_address: str) -> str:
        return self.base_url + self.path.format(address=token_address)

    async def get_token_price(self, token_address: str) -> Optional[float]:
        response = await self.client.get(self._url(token_address), headers=DEFAULT_HEADERS)
        response.raise_for_status()

        pair = pick_solana_pair(response.json().get("pairs"))
        if not pair:
            return None

        price = float(pair.get("priceUsd") or 0)
        return price if price > 0 else None


class DexScreenerSearchOracle(DexScreenerTokenOracle):
    """DexScreener search, which also finds PumpSwap / pump.fun pairs"""

    name = "dexscreener-search"
    path = "/search/?q={address}"


class JupiterPriceOracle(TokenPriceOracle):
    """Jupiter price API"""

    name = "jupiter"

    def __init__(self, client: httpx.AsyncClient, price_url: str):
        self.client = client
        self.price_url = price_url

    async def get_token_price(self, token_address: str) -> Optional[float]:
        response = await self.client.get(
            self.price_url,
            params={"ids": token_address},
            headers=DEFAULT_HEADERS
        )
        response.raise_for_status()

        entry = (response.json().get("data") or {}).get(token_address)
        if not entry or entry.get("price") is None:
            return None

        price = float(entry["price"])
        return price if price > 0 else None
