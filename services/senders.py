"""
services/senders.py
-------------------
Channel senders: one per notification channel, all with the same contract.

    await sender.send(content, channel_config)

returns on success and raises NotificationFailure with a reason on any
failure. Senders know the wire format of their provider and nothing
else; time limits are imposed by the caller (NotificationDispatcher).
"""

import asyncio
import time
from typing import Any, Optional
from urllib.parse import quote

import requests
from telegram import Bot
from telegram.error import TelegramError

from config import BARK_KEYS, DEFAULT_EMAIL_SENDER, NOTIFICATION_TIMEOUT_SECONDS, RESEND_API_URL
from models.errors import NotificationFailure, SubscriptionErrorCode
from models.notification import (
    BarkConfig,
    ChannelConfig,
    EmailConfig,
    NotificationContent,
    TelegramConfig,
    WebhookConfig,
)
from models.subscription import NotificationChannel
from utils.logger import get_logger

logger = get_logger(__name__)

_INCOMPLETE = "incomplete configuration"


class ChannelSender:
    """Base class for channel senders."""

    channel: NotificationChannel

    async def send(self, content: NotificationContent, config: ChannelConfig) -> None:
        raise NotImplementedError

    def fail(self, reason: str, code: SubscriptionErrorCode = SubscriptionErrorCode.NOTIFICATION_FAILED):
        raise NotificationFailure(self.channel.value, reason, code)


class HttpSender(ChannelSender):
    """Sender backed by a blocking `requests` call run in a worker thread."""

    def __init__(self, session: Optional[requests.Session] = None,
                 timeout: float = NOTIFICATION_TIMEOUT_SECONDS):
        self.session = session or requests.Session()
        self.timeout = timeout

    async def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return await asyncio.to_thread(
                self.session.request, method, url, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            self.fail(str(e) or e.__class__.__name__, SubscriptionErrorCode.NETWORK_ERROR)

    @staticmethod
    def _json(response: requests.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}


class TelegramSender(ChannelSender):
    channel = NotificationChannel.TELEGRAM

    async def send(self, content: NotificationContent, config: TelegramConfig) -> None:
        if not config.bot_token or not config.chat_id:
            self.fail(_INCOMPLETE)
        try:
            async with Bot(token=config.bot_token) as bot:
                await bot.send_message(
                    chat_id=config.chat_id,
                    text=f"{content.title}\n\n{content.body}",
                )
        except TelegramError as e:
            self.fail(e.message)


class EmailSender(HttpSender):
    channel = NotificationChannel.EMAIL

    async def send(self, content: NotificationContent, config: EmailConfig) -> None:
        if not config.resend_api_key or not config.recipient_email:
            self.fail(_INCOMPLETE)
        response = await self._request(
            "POST",
            RESEND_API_URL,
            headers={"Authorization": f"Bearer {config.resend_api_key}"},
            json={
                "from": config.sender_email or DEFAULT_EMAIL_SENDER,
                "to": config.recipient_email,
                "subject": content.title,
                "text": content.body,
            },
        )
        if not response.ok:
            data = self._json(response)
            self.fail(data.get("message") or f"HTTP {response.status_code}")


class WebhookSender(HttpSender):
    channel = NotificationChannel.WEBHOOK

    async def send(self, content: NotificationContent, config: WebhookConfig) -> None:
        if not config.url:
            self.fail(_INCOMPLETE)
        method = (config.method or "POST").upper()
        kwargs: dict[str, Any] = {"headers": dict(config.headers or {})}
        if method == "POST":
            kwargs["json"] = {
                "title": content.title,
                "body": content.body,
                "subscriptionName": content.subscription_name,
                "expiryDate": content.expiry_date,
                "remainingDays": content.remaining_days,
                "timestamp": int(time.time() * 1000),
            }
        response = await self._request(method, config.url, **kwargs)
        if not response.ok:
            self.fail(f"HTTP {response.status_code}")


class BarkSender(HttpSender):
    channel = NotificationChannel.BARK

    def __init__(self, saved_keys: Optional[dict[str, dict]] = None, **kwargs):
        super().__init__(**kwargs)
        self.saved_keys = BARK_KEYS if saved_keys is None else saved_keys

    def resolve_target(self, config: BarkConfig) -> tuple[str, str]:
        """Return (server, device_key) for the config, from a saved key or inline fields."""
        if config.use_existing_key and config.existing_key_id:
            saved = self.saved_keys.get(config.existing_key_id)
            if not saved:
                self.fail(f"saved Bark key '{config.existing_key_id}' not found")
            return saved["server"], saved["deviceKey"]
        if config.server and config.device_key:
            return config.server, config.device_key
        self.fail(_INCOMPLETE)

    async def send(self, content: NotificationContent, config: BarkConfig) -> None:
        server, device_key = self.resolve_target(config)
        url = "/".join([
            server.rstrip("/"),
            quote(device_key, safe=""),
            quote(content.title, safe=""),
            quote(content.body, safe=""),
        ])
        response = await self._request("GET", url)
        data = self._json(response)
        if data.get("code") != 200:
            self.fail(data.get("message") or f"HTTP {response.status_code}")


def default_senders() -> dict[NotificationChannel, ChannelSender]:
    return {
        NotificationChannel.TELEGRAM: TelegramSender(),
        NotificationChannel.EMAIL: EmailSender(),
        NotificationChannel.WEBHOOK: WebhookSender(),
        NotificationChannel.BARK: BarkSender(),
    }
