"""
SolBridge - CCXT Exchange Implementation
Spot trading on any supported CEX through ccxt's async API
"""
from typing import Optional
import logging
import ccxt.async_support as ccxt

from .base import BaseExchange, OrderSide, OrderResult, Ticker
from core.exceptions import AuthRequiredError, ExchangeConnectionError

logger = logging.getLogger(__name__)

# Exchanges where ccxt offers a sandbox
SANDBOX_EXCHANGES = {"binance", "bybit", "okx", "kucoin"}
SUPPORTED_EXCHANGES = SANDBOX_EXCHANGES | {"gateio", "bitget"}


class CcxtExchange(BaseExchange):
    """Authenticated spot session for one owner on one exchange"""

    def __init__(
        self,
        exchange_id: str,
        api_key: str,
        api_secret: str,
        owner_id: int,
        testnet: bool = False
    ):
        super().__init__(api_key, api_secret)
        exchange_id = exchange_id.lower()
        if exchange_id not in SUPPORTED_EXCHANGES:
            raise ValueError(f"Unsupported exchange: {exchange_id}")
        self.exchange_id = exchange_id
        self.owner_id = owner_id
        self.testnet = testnet
        self._exchange: Optional[ccxt.Exchange] = None

    @property
    def name(self) -> str:
        return self.exchange_id

    async def connect(self) -> bool:
        """Create the ccxt client and load markets"""
        exchange_class = getattr(ccxt, self.exchange_id)
        config = {
            "apiKey": self.api_key,
            "secret": self.api_secret,
            "enableRateLimit": True,
        }
        if self.exchange_id == "binance":
            config["options"] = {"defaultType": "spot", "adjustForTimeDifference": True}

        self._exchange = exchange_class(config)
        if self.testnet and self.exchange_id in SANDBOX_EXCHANGES:
            self._exchange.set_sandbox_mode(True)

        try:
            self._exchange.check_required_credentials()
            await self._exchange.load_markets()
            return True
        except ccxt.AuthenticationError as e:
            await self.disconnect()
            raise AuthRequiredError(self.owner_id, str(e))
        except ccxt.NetworkError as e:
            await self.disconnect()
            raise ExchangeConnectionError(self.exchange_id, str(e))

    async def disconnect(self) -> None:
        """Close the underlying HTTP session"""
        if self._exchange:
            await self._exchange.close()
            self._exchange = None

    async def get_ticker(self, symbol: str) -> Ticker:
        """Get current price ticker"""
        if not self._exchange:
            await self.connect()

        try:
            ticker = await self._exchange.fetch_ticker(symbol)
        except ccxt.AuthenticationError as e:
            raise AuthRequiredError(self.owner_id, str(e))

        last = ticker.get("last")
        return Ticker(
            symbol=symbol,
            last_price=float(last or 0),
            bid=float(ticker.get("bid") or last or 0),
            ask=float(ticker.get("ask") or last or 0)
        )

    async def place_market_order(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float
    ) -> OrderResult:
        """Place a market order"""
        if not self._exchange:
            await self.connect()

        try:
            order = await self._exchange.create_order(
                symbol=symbol,
                type="market",
                side=side.value,
                amount=quantity
            )
        except (ccxt.DDoSProtection, ccxt.InvalidNonce) as e:
            # Refused before the order was accepted
            return self._failed(symbol, side, quantity, e)
        except ccxt.NetworkError as e:
            logger.error(f"{self.exchange_id} market {side.value} {quantity} {symbol} outcome unknown: {e}")
            return self._failed(symbol, side, quantity, e, outcome_unknown=True)
        except ccxt.BaseError as e:
            return self._failed(symbol, side, quantity, e)

        if order.get("filled") is None or order.get("status") != "closed":
            order = await self._refresh_order(order, symbol)

        return OrderResult(
            success=True,
            order_id=str(order["id"]),
            symbol=symbol,
            side=side,
            quantity=quantity,
            filled_quantity=float(order.get("filled") or 0),
            average_price=float(order["average"]) if order.get("average") else None,
            status=order.get("status") or "unknown"
        )

    async def _refresh_order(self, order: dict, symbol: str) -> dict:
        """Some exchanges acknowledge a market order before reporting its fill"""
        try:
            return await self._exchange.fetch_order(order["id"], symbol)
        except ccxt.BaseError as e:
            logger.warning(f"{self.exchange_id} could not refresh order {order['id']}: {e}")
            return order

    def _failed(
        self,
        symbol: str,
        side: OrderSide,
        quantity: float,
        error: Exception,
        outcome_unknown: bool = False
    ) -> OrderResult:
        if not outcome_unknown:
            logger.error(f"{self.exchange_id} market {side.value} {quantity} {symbol} failed: {error}")
        return OrderResult(
            success=False,
            order_id=None,
            symbol=symbol,
            side=side,
            quantity=quantity,
            filled_quantity=0,
            average_price=None,
            status="unknown" if outcome_unknown else "failed",
            error=str(error),
            outcome_unknown=outcome_unknown
        )
