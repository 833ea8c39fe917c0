# relay/channels/telegram.py
# @ai-rules:
# 1. [Constraint]: notify() never raises and never blocks the caller. One bounded task per message.
# 2. [Pattern]: Missing TELEGRAM_BOT_TOKEN/TELEGRAM_CHAT_ID -> silent no-op, logged once at construction.
# 3. [Gotcha]: The bot token is part of the URL. Redact it from anything that gets logged.
"""TelegramNotifier -- best-effort status messages to a Telegram chat via the Bot API."""
from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional

import httpx

from .formatter import truncate

logger = logging.getLogger(__name__)

TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "")
TELEGRAM_CHAT_ID = os.getenv("TELEGRAM_CHAT_ID", "")
TELEGRAM_API_URL = os.getenv("TELEGRAM_API_URL", "https://api.telegram.org")
RELAY_NOTIFY_TIMEOUT = float(os.getenv("RELAY_NOTIFY_TIMEOUT", "10"))

# Seconds to wait for in-flight messages on shutdown
_DRAIN_TIMEOUT = 5.0


class TelegramNotifier:
    """Fire-and-forget Telegram sender."""

    def __init__(
        self,
        bot_token: str = TELEGRAM_BOT_TOKEN,
        chat_id: str = TELEGRAM_CHAT_ID,
        api_url: str = TELEGRAM_API_URL,
        timeout: float = RELAY_NOTIFY_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._tasks: set[asyncio.Task] = set()

        if not self.enabled:
            logger.info("Telegram notifications disabled (TELEGRAM_BOT_TOKEN/TELEGRAM_CHAT_ID not set)")

    @property
    def enabled(self) -> bool:
        return bool(self._bot_token and self._chat_id)

    def _redact(self, text: str) -> str:
        return text.replace(self._bot_token, "***") if self._bot_token else text

    def notify(self, message: str) -> None:
        """Schedule *message* for delivery and return immediately."""
        if not self.enabled:
            return
        try:
            task = asyncio.get_running_loop().create_task(self._deliver(message))
        except RuntimeError:
            logger.warning("No running event loop; dropping notification")
            return
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _deliver(self, message: str) -> None:
        # httpx timeouts are per phase; this bounds the whole send
        try:
            await asyncio.wait_for(self.send(message), timeout=self.timeout * 2)
        except asyncio.TimeoutError:
            logger.error(f"❌ Telegram notification abandoned after {self.timeout * 2:.0f}s")

    async def send(self, message: str) -> bool:
        """
        Deliver *message* now.

        Returns True on a 2xx response. All failures are logged and absorbed.
        """
        if not self.enabled:
            return False

        url = f"{self._api_url}/bot{self._bot_token}/sendMessage"
        payload = {
            "chat_id": self._chat_id,
            "text": truncate(message),
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.TimeoutException:
            logger.error(f"❌ Telegram notification timed out after {self.timeout:.0f}s")
            return False
        except httpx.HTTPError as e:
            logger.error(f"❌ Failed to send Telegram notification: {self._redact(str(e))}")
            return False
        except Exception as e:
            logger.error(f"❌ Unexpected Telegram error: {self._redact(repr(e))}")
            return False

        if response.status_code // 100 != 2:
            logger.error(
                f"❌ Telegram API returned {response.status_code}: "
                f"{self._redact(response.text[:500])}"
            )
            return False

        logger.info("📱 Telegram notification sent")
        return True

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def aclose(self) -> None:
        """Give in-flight messages a short grace period, then cancel the rest."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        _, pending = await asyncio.wait(tasks, timeout=_DRAIN_TIMEOUT)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(f"Dropped {len(pending)} undelivered Telegram notifications on shutdown")
