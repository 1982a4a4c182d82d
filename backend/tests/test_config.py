"""
Settings validation for exit timeouts and position locks.
"""
import pytest
from pydantic import ValidationError

from core.config import Settings


class TestExitTimeouts:
    def test_defaults_are_consistent(self):
        settings = Settings()

        assert settings.SOLANA_CONFIRM_TIMEOUT_SECONDS < settings.ORDER_TIMEOUT_SECONDS
        assert settings.POSITION_LOCK_TTL_SECONDS > settings.ORDER_TIMEOUT_SECONDS

    def test_lock_must_outlive_order_timeout(self):
        with pytest.raises(ValidationError) as exc:
            Settings(ORDER_TIMEOUT_SECONDS=200, POSITION_LOCK_TTL_SECONDS=120)
        assert "POSITION_LOCK_TTL_SECONDS" in str(exc.value)

    def test_lock_ttl_ignored_without_locks(self):
        settings = Settings(ORDER_TIMEOUT_SECONDS=200, POSITION_LOCK_TTL_SECONDS=120, POSITION_LOCK_ENABLED=False)

        assert settings.ORDER_TIMEOUT_SECONDS == 200

    def test_confirmation_must_fit_in_order_timeout(self):
        with pytest.raises(ValidationError) as exc:
            Settings(SOLANA_CONFIRM_TIMEOUT_SECONDS=60, ORDER_TIMEOUT_SECONDS=60)
        assert "SOLANA_CONFIRM_TIMEOUT_SECONDS" in str(exc.value)

    def test_timeouts_must_be_positive(self):
        with pytest.raises(ValidationError):
            Settings(ORDER_TIMEOUT_SECONDS=0)
