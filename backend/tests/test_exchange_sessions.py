"""
Exchange session cache keyed by owner id.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.exceptions import AuthRequiredError
from services.exchange.sessions import ExchangeSessionCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _factory():
    created = []

    def build(**kwargs):
        exchange = MagicMock()
        exchange.name = kwargs["exchange_id"]
        exchange.kwargs = kwargs
        exchange.connect = AsyncMock(return_value=True)
        exchange.disconnect = AsyncMock()
        created.append(exchange)
        return exchange

    build.created = created
    return build


async def _add_account(credential_scope, owner_id=42, exchange="bybit"):
    from models.credential import ExchangeAccount

    async with credential_scope() as repo:
        repo.session.add(ExchangeAccount(
            owner_id=owner_id, exchange=exchange, api_key="key", api_secret="secret"
        ))


class TestExchangeSessionCache:
    async def test_missing_credentials(self, credential_scope):
        cache = ExchangeSessionCache(credential_scope, exchange_factory=_factory())

        with pytest.raises(AuthRequiredError):
            await cache.get(42)

    async def test_reuses_session_until_expiry(self, credential_scope):
        await _add_account(credential_scope)
        factory = _factory()
        clock = FakeClock()
        cache = ExchangeSessionCache(
            credential_scope, ttl_seconds=600, testnet=True, exchange_factory=factory, clock=clock
        )

        first = await cache.get(42)
        again = await cache.get(42)
        assert first is again
        assert first.kwargs["exchange_id"] == "bybit"
        assert first.kwargs["testnet"] is True
        assert len(factory.created) == 1

        clock.now = 601
        renewed = await cache.get(42)
        assert renewed is not first
        first.disconnect.assert_awaited_once()
        assert len(cache) == 1

    async def test_invalidate_and_close_all(self, credential_scope):
        await _add_account(credential_scope, owner_id=1)
        await _add_account(credential_scope, owner_id=2)
        cache = ExchangeSessionCache(credential_scope, exchange_factory=_factory())

        one = await cache.get(1)
        two = await cache.get(2)
        await cache.invalidate(1)
        one.disconnect.assert_awaited_once()
        assert len(cache) == 1

        await cache.close_all()
        two.disconnect.assert_awaited_once()
        assert len(cache) == 0
