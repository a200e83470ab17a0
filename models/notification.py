"""
models/notification.py
----------------------
Notification channel configuration, global reminder settings and the
value objects exchanged with channel senders.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union

from models.errors import ImportFormatError
from models.subscription import CHANNEL_ORDER, NotificationChannel

PAGE_SIZE_OPTIONS = (10, 20, 50, 100)


@dataclass
class TelegramConfig:
    enabled: bool = False
    bot_token: str = ""
    chat_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "botToken": self.bot_token, "chatId": self.chat_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TelegramConfig":
        return cls(
            enabled=bool(data.get("enabled", False)),
            bot_token=data.get("botToken") or "",
            chat_id=str(data.get("chatId") or ""),
        )


@dataclass
class EmailConfig:
    """Email delivered through the Resend HTTP API."""
    enabled: bool = False
    resend_api_key: str = ""
    recipient_email: str = ""
    sender_email: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "enabled": self.enabled,
            "resendApiKey": self.resend_api_key,
            "recipientEmail": self.recipient_email,
        }
        if self.sender_email:
            data["senderEmail"] = self.sender_email
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EmailConfig":
        return cls(
            enabled=bool(data.get("enabled", False)),
            resend_api_key=data.get("resendApiKey") or "",
            recipient_email=data.get("recipientEmail") or "",
            sender_email=data.get("senderEmail") or None,
        )


@dataclass
class WebhookConfig:
    enabled: bool = False
    url: str = ""
    headers: Optional[dict[str, str]] = None
    method: str = "POST"  # 'GET' | 'POST'

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"enabled": self.enabled, "url": self.url, "method": self.method}
        if self.headers:
            data["headers"] = dict(self.headers)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WebhookConfig":
        method = str(data.get("method") or "POST").upper()
        return cls(
            enabled=bool(data.get("enabled", False)),
            url=data.get("url") or "",
            headers=dict(data["headers"]) if data.get("headers") else None,
            method=method if method in ("GET", "POST") else "POST",
        )


@dataclass
class BarkConfig:
    """
    Bark push notice. Either references a saved device (`existing_key_id`,
    resolved through BARK_KEYS) or carries its own server + device key.
    """
    enabled: bool = False
    use_existing_key: bool = True
    existing_key_id: Optional[str] = None
    server: Optional[str] = None
    device_key: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"enabled": self.enabled, "useExistingKey": self.use_existing_key}
        if self.existing_key_id:
            data["existingKeyId"] = self.existing_key_id
        if self.server:
            data["server"] = self.server
        if self.device_key:
            data["deviceKey"] = self.device_key
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BarkConfig":
        return cls(
            enabled=bool(data.get("enabled", False)),
            use_existing_key=bool(data.get("useExistingKey", True)),
            existing_key_id=data.get("existingKeyId") or None,
            server=data.get("server") or None,
            device_key=data.get("deviceKey") or None,
        )


ChannelConfig = Union[TelegramConfig, EmailConfig, WebhookConfig, BarkConfig]

_CHANNEL_CONFIG_TYPES: dict[NotificationChannel, type] = {
    NotificationChannel.TELEGRAM: TelegramConfig,
    NotificationChannel.EMAIL: EmailConfig,
    NotificationChannel.WEBHOOK: WebhookConfig,
    NotificationChannel.BARK: BarkConfig,
}


@dataclass
class NotificationConfig:
    """All four channel configs. Partial configs are not representable."""
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    bark: BarkConfig = field(default_factory=BarkConfig)

    def for_channel(self, channel: NotificationChannel) -> ChannelConfig:
        return getattr(self, NotificationChannel(channel).value)

    def with_channel(self, channel: NotificationChannel, config: ChannelConfig) -> "NotificationConfig":
        values = {c.value: self.for_channel(c) for c in CHANNEL_ORDER}
        values[NotificationChannel(channel).value] = config
        return NotificationConfig(**values)

    def enabled_channels(self) -> list[NotificationChannel]:
        return [c for c in CHANNEL_ORDER if self.for_channel(c).enabled]

    def to_dict(self) -> dict[str, Any]:
        return {c.value: self.for_channel(c).to_dict() for c in CHANNEL_ORDER}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NotificationConfig":
        """
        Build from the camelCase bundle shape.

        Raises:
            ImportFormatError: If any of the four channel objects is missing.
        """
        if not isinstance(data, dict):
            raise ImportFormatError("Notification config: invalid format")
        missing = [
            f"Notification config: missing {c.value} config"
            for c in CHANNEL_ORDER
            if not isinstance(data.get(c.value), dict)
        ]
        if missing:
            raise ImportFormatError("Notification config is incomplete", missing)
        return cls(**{
            c.value: _CHANNEL_CONFIG_TYPES[c].from_dict(data[c.value]) for c in CHANNEL_ORDER
        })


DEFAULT_NOTIFICATION_CONFIG = NotificationConfig()


@dataclass
class SubscriptionSettings:
    """
    Global reminder behaviour.

    Attributes:
        show_lunar_date: Display preference, stored and round-tripped only.
        default_reminder_days: Pre-filled reminder days for new subscriptions.
        daily_reminder: Remind every day inside the reminder window instead
            of once when the window is entered.
        page_size: List page size, one of PAGE_SIZE_OPTIONS.
    """
    show_lunar_date: bool = False
    default_reminder_days: int = 7
    daily_reminder: bool = True
    page_size: int = 10

    def to_dict(self) -> dict[str, Any]:
        return {
            "showLunarDate": self.show_lunar_date,
            "defaultReminderDays": self.default_reminder_days,
            "dailyReminder": self.daily_reminder,
            "pageSize": self.page_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SubscriptionSettings":
        defaults = cls()
        page_size = data.get("pageSize", defaults.page_size)
        return cls(
            show_lunar_date=bool(data.get("showLunarDate", defaults.show_lunar_date)),
            default_reminder_days=int(data.get("defaultReminderDays", defaults.default_reminder_days)),
            daily_reminder=bool(data.get("dailyReminder", defaults.daily_reminder)),
            page_size=page_size if page_size in PAGE_SIZE_OPTIONS else defaults.page_size,
        )


DEFAULT_SETTINGS = SubscriptionSettings()


@dataclass(frozen=True)
class NotificationContent:
    """What a channel sender delivers. Senders never modify it."""
    title: str
    body: str
    subscription_name: str
    expiry_date: str
    remaining_days: int


@dataclass
class NotificationResult:
    """Outcome of one channel send."""
    channel: str
    success: bool
    error: Optional[str] = None
