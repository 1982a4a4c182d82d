"""
SolBridge - Telegram Notification Service
One-way messages to owners (chat id == Telegram user id) and the operator.
"""
from typing import Any, Optional
from html import escape
import logging

import httpx

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """
    Telegram Bot API sendMessage wrapper.
    Delivery failures are logged and reported as False, never raised.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        bot_token: Optional[str],
        api_url: str = "https://api.telegram.org",
        operator_chat_id: Optional[int] = None
    ):
        self.client = client
        self.bot_token = bot_token
        self.api_url = api_url.rstrip("/")
        self.operator_chat_id = operator_chat_id

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token)

    async def notify(self, owner_id: int, message: str) -> bool:
        """Send an HTML message to a user"""
        if not self.enabled:
            logger.warning("Telegram not configured, skipping notification")
            return False

        try:
            response = await self.client.post(
                f"{self.api_url}/bot{self.bot_token}/sendMessage",
                json={
                    "chat_id": owner_id,
                    "text": message,
                    "parse_mode": "HTML",
                    "disable_web_page_preview": True,
                }
            )
        except httpx.HTTPError as e:
            logger.error(f"Failed to send notification to {owner_id}: {e}")
            return False

        if response.status_code != 200:
            logger.error(f"Telegram send to {owner_id} failed ({response.status_code}): {response.text}")
            return False
        return True

    async def alert_operator(self, message: str) -> bool:
        """Critical alert to the operator chat, if one is configured"""
        if self.operator_chat_id is None:
            logger.warning(f"No operator chat configured for alert: {message}")
            return False
        return await self.notify(self.operator_chat_id, message)


def _money(value: float, decimals: int = 2) -> str:
    sign = "+" if value >= 0 else "-"
    return f"{sign}${abs(value):,.{decimals}f}"


def format_exit_message(
    position: Any,
    close_price: float,
    pnl: float,
    pnl_percent: float,
    reason_label: str
) -> str:
    """Closure summary sent to the owner"""
    pnl_emoji = "🟢" if pnl >= 0 else "🔴"
    side_emoji = "📈" if position.side.value == "LONG" else "📉"
    pct_sign = "+" if pnl_percent >= 0 else ""

    return (
        f"🔔 <b>{escape(reason_label)}</b>\n\n"
        f"{side_emoji} {escape(position.symbol)} {position.side.value}\n"
        f"💰 Entry: ${position.entry_price:.6f}\n"
        f"💵 Exit: ${close_price:.6f}\n"
        f"{pnl_emoji} P&amp;L: {_money(pnl)} ({pct_sign}{pnl_percent:.2f}%)\n\n"
        f"✅ Position automatically closed"
    )


def format_exit_failure_message(position: Any, attempts: int, error: str) -> str:
    """Escalation after repeated failed exit attempts"""
    return (
        f"⚠️ <b>Automatic exit failing</b>\n\n"
        f"{escape(position.symbol)} {position.side.value} (position #{position.id})\n"
        f"Attempts: {attempts}\n"
        f"Last error: <code>{escape(error)}</code>\n\n"
        f"The position is still open. Monitoring continues; consider closing it manually."
    )


def format_inconsistent_state_alert(position: Any, order_id: Optional[str], error: str) -> str:
    """Operator alert: exit may have executed but the record is not closed"""
    return (
        f"🚨 <b>Manual reconciliation required</b>\n\n"
        f"Position #{position.id} ({escape(position.symbol)} {position.side.value}, owner {position.owner_id})\n"
        f"Exit order <code>{escape(order_id or 'unknown')}</code> may have executed but the closed state was not stored.\n"
        f"Error: <code>{escape(error)}</code>\n\n"
        f"The position is quarantined and will not be retried."
    )
