"""
Shared fixtures: in-memory repositories, scripted channel senders and
fixed reference instants. No database or network is touched.
"""

import asyncio
import os
from datetime import datetime, timezone

os.environ["TIMEZONE"] = "UTC"

import pytest

from dateutil import tz as dateutil_tz

from models.errors import NotificationFailure, StorageFailure
from models.notification import EmailConfig, NotificationConfig, SubscriptionSettings, TelegramConfig
from models.subscription import NotificationChannel, Subscription, generate_subscription_id
from services.notification_service import NotificationDispatcher
from services.senders import ChannelSender
from utils.dates import MS_PER_DAY

UTC = dateutil_tz.UTC


def ms(year, month, day, hour=0, minute=0, tzinfo=timezone.utc) -> int:
    return int(datetime(year, month, day, hour, minute, tzinfo=tzinfo).timestamp() * 1000)


class InMemorySubscriptionRepository:
    def __init__(self, subs=()):
        self.items = {s.id: s for s in subs}
        self.fail = False
        # Makes replace_all fail part way, like a rejected insert
        self.fail_replace = False

    def _check(self):
        if self.fail:
            raise StorageFailure("database is down")

    def list_all(self):
        self._check()
        return sorted(self.items.values(), key=lambda s: s.expiry_date)

    def get(self, subscription_id):
        self._check()
        return self.items.get(subscription_id)

    def put(self, sub):
        self._check()
        self.items[sub.id] = sub
        return sub

    def batch_add(self, subs):
        self._check()
        for s in subs:
            self.items[s.id] = s

    def delete(self, subscription_id):
        self._check()
        return self.items.pop(subscription_id, None) is not None

    def replace_all(self, subs):
        self._check()
        if self.fail_replace:
            raise StorageFailure("Failed to replace subscriptions: value out of range")
        self.items = {s.id: s for s in subs}


class InMemoryReminderRepository:
    def __init__(self):
        self.marks = {}
        self.fail_put = False

    def get(self, subscription_id):
        return self.marks.get(subscription_id)

    def put(self, mark):
        if self.fail_put:
            raise StorageFailure("cannot write reminder mark")
        self.marks[mark.subscription_id] = mark

    def delete(self, subscription_id):
        self.marks.pop(subscription_id, None)


class InMemoryConfigRepository:
    def __init__(self, notification_config=None, settings=None):
        self.notification_config = notification_config or NotificationConfig()
        self.settings = settings or SubscriptionSettings()

    def get_notification_config(self):
        return self.notification_config

    def set_notification_config(self, config):
        self.notification_config = config

    def get_settings(self):
        return self.settings

    def set_settings(self, settings):
        self.settings = settings


class ScriptedSender(ChannelSender):
    """Records every send. mode: 'ok', 'fail', 'raise' or 'hang'."""

    def __init__(self, channel, mode="ok"):
        self.channel = channel
        self.mode = mode
        self.sent = []

    async def send(self, content, config):
        self.sent.append(content)
        if self.mode == "fail":
            raise NotificationFailure(self.channel.value, "invalid credentials")
        if self.mode == "raise":
            raise RuntimeError("connection reset")
        if self.mode == "hang":
            await asyncio.sleep(10)


@pytest.fixture
def now():
    return ms(2024, 3, 10, 12)


@pytest.fixture
def make_sub(now):
    def _make(**overrides):
        fields = dict(
            id=generate_subscription_id(),
            name="Netflix",
            type="video",
            cycle="monthly",
            expiry_date=now + 5 * MS_PER_DAY,
            reminder_days=7,
            notification_channels=frozenset({"telegram"}),
            is_enabled=True,
            created_at=now,
            updated_at=now,
        )
        fields.update(overrides)
        return Subscription(**fields)
    return _make


@pytest.fixture
def sub_repo():
    return InMemorySubscriptionRepository()


@pytest.fixture
def reminder_repo():
    return InMemoryReminderRepository()


@pytest.fixture
def config_repo():
    return InMemoryConfigRepository()


@pytest.fixture
def senders():
    return {c: ScriptedSender(c) for c in NotificationChannel}


@pytest.fixture
def dispatcher(senders):
    return NotificationDispatcher(senders=senders, timeout=1)


@pytest.fixture
def enabled_config():
    """Telegram and email switched on, webhook and bark off."""
    return NotificationConfig(
        telegram=TelegramConfig(enabled=True, bot_token="123:abc", chat_id="42"),
        email=EmailConfig(enabled=True, resend_api_key="re_key", recipient_email="me@example.com"),
    )
