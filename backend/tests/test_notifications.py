"""
Telegram notifier and message formatting.
"""
import json

import httpx

from models.position import PositionSide
from services.telegram import (
    TelegramNotifier, format_exit_message, format_exit_failure_message, format_inconsistent_state_alert,
)
from conftest import make_position


def _notifier(handler, token="123:abc", operator_chat_id=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TelegramNotifier(client, token, operator_chat_id=operator_chat_id)


class TestTelegramNotifier:
    async def test_sends_html_message(self):
        sent = []

        def handler(request):
            sent.append((request.url.path, json.loads(request.content)))
            return httpx.Response(200, json={"ok": True})

        notifier = _notifier(handler)
        assert await notifier.notify(42, "<b>hi</b>") is True

        path, body = sent[0]
        assert path == "/bot123:abc/sendMessage"
        assert body["chat_id"] == 42
        assert body["parse_mode"] == "HTML"

    async def test_api_error_returns_false(self):
        notifier = _notifier(lambda request: httpx.Response(403, json={"ok": False}))
        assert await notifier.notify(42, "hi") is False

    async def test_network_error_returns_false(self):
        def handler(request):
            raise httpx.ConnectError("unreachable")

        notifier = _notifier(handler)
        assert await notifier.notify(42, "hi") is False

    async def test_not_configured(self):
        notifier = _notifier(lambda request: httpx.Response(200), token=None)
        assert not notifier.enabled
        assert await notifier.notify(42, "hi") is False

    async def test_operator_alert(self):
        chats = []

        def handler(request):
            chats.append(json.loads(request.content)["chat_id"])
            return httpx.Response(200, json={"ok": True})

        assert await _notifier(handler).alert_operator("down") is False
        assert await _notifier(handler, operator_chat_id=999).alert_operator("down") is True
        assert chats == [999]


class TestFormatting:
    def test_exit_message(self):
        position = make_position(symbol="SOL/USDT", entry_price=100.0)
        message = format_exit_message(position, 115.0, 15.0, 15.0, "Take Profit Hit")

        assert "Take Profit Hit" in message
        assert "SOL/USDT LONG" in message
        assert "$100.000000" in message
        assert "$115.000000" in message
        assert "+$15.00 (+15.00%)" in message

    def test_losing_short(self):
        position = make_position(side=PositionSide.SHORT, entry_price=1.0, amount=10.0)
        message = format_exit_message(position, 1.5, -5.0, -50.0, "Stop Loss Hit")

        assert "🔴" in message
        assert "-$5.00 (-50.00%)" in message

    def test_symbols_are_escaped(self):
        position = make_position(symbol="<script>")
        message = format_exit_failure_message(position, 3, "a < b")

        assert "<script>" not in message
        assert "&lt;script&gt;" in message
        assert "Attempts: 3" in message

    def test_inconsistent_state_alert(self):
        message = format_inconsistent_state_alert(make_position(id=7), "sig123", "db down")

        assert "#7" in message
        assert "sig123" in message
        assert "quarantined" in message
