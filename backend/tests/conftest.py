import base64
import json
from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import MagicMock, AsyncMock

import httpx
import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.transaction import VersionedTransaction
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from db.base import Base
from db.repositories.base import RepositoryScope
from db.repositories.position import PositionRepository, CloseResult
from db.repositories.credential import CredentialRepository
from models.position import PositionSide, PositionStatus, Venue
from schemas.position import PositionSnapshot
from services.dex.jupiter import JupiterSwapClient
from services.dex.solana_rpc import SolanaRpcClient
from services.execution import ExitFill


def make_position(**overrides) -> PositionSnapshot:
    """OPEN LONG CEX position with entry 100 unless overridden"""
    values = dict(
        id=1,
        owner_id=42,
        venue=Venue.CEX,
        symbol="BTC/USDT",
        exchange="binance",
        side=PositionSide.LONG,
        amount=1.0,
        entry_price=100.0,
        auto_exit_enabled=True,
        status=PositionStatus.OPEN,
    )
    values.update(overrides)
    return PositionSnapshot(**values)


def wallet_credentials(wallet):
    """Callable like credential_scope whose repository returns `wallet`"""
    class Repo:
        async def get_active_wallet(self, owner_id):
            return wallet

    @asynccontextmanager
    async def scope():
        yield Repo()

    return scope


def make_swap_transaction(payer: Keypair) -> str:
    """Base64 transaction shaped like a Jupiter /swap response"""
    message = MessageV0.try_compile(payer.pubkey(), [], [], Hash.default())
    return base64.b64encode(bytes(VersionedTransaction(message, [payer]))).decode("ascii")


class FakeSolanaNetwork:
    """
    httpx handler answering as Jupiter and a Solana RPC node.
    `statuses` are returned by successive getSignatureStatuses polls
    (the last one repeats); None means the signature is not seen yet.
    """

    def __init__(self, wallet: Keypair, statuses=None, send_error=None, send_status=200):
        self.wallet = wallet
        self.statuses = statuses if statuses is not None else [{"confirmationStatus": "confirmed", "err": None}]
        self.send_error = send_error
        self.send_status = send_status
        self.quotes = []
        self.sent = []
        self.status_polls = 0

    def __call__(self, request):
        if request.url.path.endswith("/quote"):
            self.quotes.append(dict(request.url.params))
            return httpx.Response(200, json={"inAmount": "1000", "outAmount": "2000"})
        if request.url.path.endswith("/swap"):
            return httpx.Response(200, json={"swapTransaction": make_swap_transaction(self.wallet)})

        body = json.loads(request.content)
        if body["method"] == "sendTransaction":
            transaction = VersionedTransaction.from_bytes(base64.b64decode(body["params"][0]))
            self.sent.append(transaction)
            if self.send_status != 200:
                return httpx.Response(self.send_status)
            if self.send_error:
                return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "error": self.send_error})
            return httpx.Response(200, json={
                "jsonrpc": "2.0", "id": body["id"], "result": str(transaction.signatures[0])
            })

        if body["method"] == "getSignatureStatuses":
            status = self.statuses[min(self.status_polls, len(self.statuses) - 1)]
            self.status_polls += 1
            return httpx.Response(200, json={
                "jsonrpc": "2.0", "id": body["id"], "result": {"context": {"slot": 1}, "value": [status]}
            })

        return httpx.Response(404)


def make_swap_client(network: FakeSolanaNetwork, confirm_timeout: float = 1.0) -> JupiterSwapClient:
    client = httpx.AsyncClient(transport=httpx.MockTransport(network))
    rpc = SolanaRpcClient(client, "https://rpc.example", poll_interval=0.01)
    return JupiterSwapClient(
        client, rpc, ["https://jup.example/v6"], "https://jup.example/v6", confirm_timeout=confirm_timeout
    )


@pytest.fixture
def solana_wallet():
    return Keypair()


class FakePositionRepository:
    """In-memory stand-in for PositionRepository used by monitor tests"""

    def __init__(self, store: dict):
        self.store = store
        self.closed_calls = []

    async def list_open_auto_exit_positions(self):
        return [
            SimpleNamespace(**p) for p in self.store.values()
            if p["status"] == PositionStatus.OPEN and p["auto_exit_enabled"]
        ]

    async def get_by_id(self, position_id):
        p = self.store.get(position_id)
        return SimpleNamespace(**p) if p else None

    async def update_price(self, position_id, price):
        p = self.store[position_id]
        if p["status"] != PositionStatus.OPEN:
            return False
        p["current_price"] = price
        return True

    async def update_highest_price(self, position_id, price):
        p = self.store[position_id]
        best = p["highest_price"]
        if best is not None:
            if p["side"] == PositionSide.LONG and price <= best:
                return False
            if p["side"] == PositionSide.SHORT and price >= best:
                return False
        p["highest_price"] = price
        return True

    async def claim_for_closing(self, position_id):
        p = self.store.get(position_id)
        if not p or p["status"] != PositionStatus.OPEN:
            return False
        p["status"] = PositionStatus.CLOSING
        return True

    async def release_claim(self, position_id):
        p = self.store[position_id]
        if p["status"] != PositionStatus.CLOSING:
            return False
        p["status"] = PositionStatus.OPEN
        return True

    async def close_position(self, position_id, close_price, pnl, pnl_percent, reason=None,
                             exit_order_id=None, fill_price=None):
        p = self.store[position_id]
        if p["status"] not in (PositionStatus.OPEN, PositionStatus.CLOSING):
            return CloseResult.ALREADY_CLOSED
        p.update(
            status=PositionStatus.CLOSED,
            close_price=close_price,
            pnl_absolute=pnl,
            pnl_percent=pnl_percent,
            close_reason=reason,
            exit_order_id=exit_order_id,
        )
        return CloseResult.CLOSED

    async def increment_exit_failures(self, position_id):
        p = self.store[position_id]
        p["exit_failure_count"] += 1
        return p["exit_failure_count"]

    async def reset_exit_failures(self, position_id):
        self.store[position_id]["exit_failure_count"] = 0


class FakePositionScope:
    """Callable like RepositoryScope, backed by a shared dict"""

    def __init__(self, positions=()):
        self.store = {}
        for position in positions:
            self.add(position)

    def add(self, position: PositionSnapshot):
        self.store[position.id] = position.model_dump()

    def __getitem__(self, position_id):
        return self.store[position_id]

    @asynccontextmanager
    async def __call__(self):
        yield FakePositionRepository(self.store)


@pytest.fixture
def fake_positions():
    return FakePositionScope()


@pytest.fixture
def mock_executor():
    """Mock OrderExecutionAdapter"""
    executor = MagicMock()
    executor.execute_exit = AsyncMock(
        side_effect=lambda p: ExitFill(order_id=f"order-{p.id}", filled_quantity=p.amount)
    )
    return executor


@pytest.fixture
def mock_notifier():
    """Mock TelegramNotifier"""
    notifier = MagicMock()
    notifier.notify = AsyncMock(return_value=True)
    notifier.alert_operator = AsyncMock(return_value=True)
    return notifier


@pytest.fixture
async def session_factory():
    """In-memory SQLite database with all tables"""
    import models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def position_scope(session_factory):
    return RepositoryScope(PositionRepository, session_factory)


@pytest.fixture
def credential_scope(session_factory):
    return RepositoryScope(CredentialRepository, session_factory)
