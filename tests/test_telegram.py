# tests/test_telegram.py
# @ai-rules:
# 1. [Constraint]: No real Telegram calls. httpx.MockTransport answers every request.
"""Unit tests for TelegramNotifier: payload shape, failure absorption, no-op mode."""
from __future__ import annotations

import asyncio
import json
import logging

import httpx
import pytest

from relay.channels.telegram import TelegramNotifier


def _notifier(handler, **kwargs) -> TelegramNotifier:
    return TelegramNotifier(
        bot_token="123:SECRET",
        chat_id="-1001",
        api_url="https://telegram.test",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestSend:
    @pytest.mark.asyncio
    async def test_posts_html_message_to_chat(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        assert await _notifier(handler).send("<b>hello</b>") is True
        assert len(seen) == 1
        assert seen[0].url == "https://telegram.test/bot123:SECRET/sendMessage"
        body = json.loads(seen[0].content)
        assert body["chat_id"] == "-1001"
        assert body["text"] == "<b>hello</b>"
        assert body["parse_mode"] == "HTML"

    @pytest.mark.asyncio
    async def test_error_status_logged_with_body_and_redacted(self, caplog):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, text='{"ok":false,"description":"Bad Request: chat not found (123:SECRET)"}')

        with caplog.at_level(logging.ERROR, logger="relay.channels.telegram"):
            assert await _notifier(handler).send("hi") is False

        assert "400" in caplog.text
        assert "chat not found" in caplog.text
        assert "SECRET" not in caplog.text

    @pytest.mark.asyncio
    async def test_transport_error_absorbed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        assert await _notifier(handler).send("hi") is False

    @pytest.mark.asyncio
    async def test_long_message_truncated(self):
        seen: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(200, json={"ok": True})

        await _notifier(handler).send("x" * 10000)
        assert len(seen[0]["text"]) <= 4096


class TestNotify:
    @pytest.mark.asyncio
    async def test_notify_returns_immediately_and_delivers(self):
        delivered = asyncio.Event()

        def handler(request: httpx.Request) -> httpx.Response:
            delivered.set()
            return httpx.Response(200, json={"ok": True})

        notifier = _notifier(handler)
        assert notifier.notify("hi") is None
        await asyncio.wait_for(delivered.wait(), timeout=1.0)
        await notifier.aclose()
        assert notifier.in_flight == 0

    @pytest.mark.asyncio
    async def test_notify_never_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise RuntimeError("boom")

        notifier = _notifier(handler)
        notifier.notify("hi")
        await notifier.aclose()

    @pytest.mark.asyncio
    async def test_disabled_without_credentials(self):
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        notifier = TelegramNotifier(
            bot_token="", chat_id="", transport=httpx.MockTransport(handler),
        )
        assert not notifier.enabled
        notifier.notify("hi")
        assert await notifier.send("hi") is False
        assert notifier.in_flight == 0
        assert calls == []

    def test_notify_without_loop_is_dropped(self):
        notifier = _notifier(lambda request: httpx.Response(200))
        notifier.notify("hi")
        assert notifier.in_flight == 0
