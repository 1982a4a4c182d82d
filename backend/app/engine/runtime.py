"""
SolBridge - Monitor Runtime
Wires the position monitor and its collaborators from settings.
"""
from typing import Optional
import logging

import httpx
import redis.asyncio as redis

from core.config import Settings, settings
from db.session import position_scope, credential_scope
from engine.closure import ClosurePipeline
from engine.position_monitor import PositionMonitor
from services.dex.jupiter import JupiterSwapClient
from services.dex.oracles import DexScreenerTokenOracle, DexScreenerSearchOracle, JupiterPriceOracle
from services.dex.solana_rpc import SolanaRpcClient
from services.exchange.sessions import ExchangeSessionCache
from services.execution import OrderExecutionAdapter
from services.locks import PositionLockManager
from services.price_resolver import PriceOracleChain, PriceResolver
from services.telegram import TelegramNotifier

logger = logging.getLogger(__name__)


class MonitorRuntime:
    """A monitor plus the clients it owns"""

    def __init__(
        self,
        monitor: PositionMonitor,
        http_client: httpx.AsyncClient,
        exchange_sessions: ExchangeSessionCache,
        redis_client: Optional[redis.Redis] = None
    ):
        self.monitor = monitor
        self.http_client = http_client
        self.exchange_sessions = exchange_sessions
        self.redis_client = redis_client

    async def close(self):
        await self.monitor.stop()
        await self.exchange_sessions.close_all()
        await self.http_client.aclose()
        if self.redis_client is not None:
            await self.redis_client.aclose()


def build_monitor_runtime(config: Settings = settings) -> MonitorRuntime:
    """Build a fully wired monitor for the current event loop"""
    http_client = httpx.AsyncClient(timeout=config.PRICE_FETCH_TIMEOUT_SECONDS)

    dex_prices = PriceOracleChain([
        DexScreenerTokenOracle(http_client, config.DEXSCREENER_API_URL),
        DexScreenerSearchOracle(http_client, config.DEXSCREENER_API_URL),
        JupiterPriceOracle(http_client, config.JUPITER_PRICE_URL),
    ])
    exchange_sessions = ExchangeSessionCache(
        credential_scope,
        ttl_seconds=config.EXCHANGE_SESSION_TTL_SECONDS,
        testnet=config.USE_TESTNET
    )
    price_resolver = PriceResolver(dex_prices, exchange_sessions, timeout=config.PRICE_FETCH_TIMEOUT_SECONDS)

    rpc = SolanaRpcClient(http_client, config.SOLANA_RPC_URL)
    swaps = JupiterSwapClient(
        http_client,
        rpc,
        quote_urls=config.JUPITER_QUOTE_URLS,
        swap_url=config.JUPITER_SWAP_URL,
        confirm_timeout=config.SOLANA_CONFIRM_TIMEOUT_SECONDS
    )
    executor = OrderExecutionAdapter(
        exchange_sessions, swaps, credential_scope, timeout=config.ORDER_TIMEOUT_SECONDS
    )

    notifier = TelegramNotifier(
        http_client,
        config.TELEGRAM_BOT_TOKEN,
        api_url=config.TELEGRAM_API_URL,
        operator_chat_id=config.OPERATOR_CHAT_ID
    )

    redis_client = None
    locks = None
    if config.POSITION_LOCK_ENABLED:
        redis_client = redis.from_url(config.REDIS_URL)
        locks = PositionLockManager(redis_client, ttl_seconds=config.POSITION_LOCK_TTL_SECONDS)
    else:
        logger.warning("Position locks disabled; only the database guards against double closure")

    pipeline = ClosurePipeline(
        position_scope,
        executor,
        notifier,
        locks=locks,
        failure_alert_threshold=config.EXIT_FAILURE_ALERT_THRESHOLD
    )
    monitor = PositionMonitor(
        position_scope,
        price_resolver,
        pipeline,
        interval_seconds=config.MONITOR_INTERVAL_SECONDS,
        max_concurrency=config.MONITOR_MAX_CONCURRENCY
    )
    return MonitorRuntime(monitor, http_client, exchange_sessions, redis_client)


# Runtime of the API process, created by start_position_monitor
_runtime: Optional[MonitorRuntime] = None


def get_position_monitor() -> Optional[PositionMonitor]:
    return _runtime.monitor if _runtime else None


async def start_position_monitor() -> PositionMonitor:
    """Start the monitor loop in the background of the API process"""
    global _runtime
    if _runtime is None:
        _runtime = build_monitor_runtime()
    _runtime.monitor.start_background()
    return _runtime.monitor


async def stop_position_monitor():
    """Stop the monitor and release its clients"""
    global _runtime
    if _runtime is not None:
        await _runtime.close()
        _runtime = None
