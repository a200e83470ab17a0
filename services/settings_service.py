"""
services/settings_service.py
----------------------------
Reminder settings and notification channel configuration.
"""

from dataclasses import fields as dataclass_fields, replace
from typing import Any, Optional

from config import BARK_KEYS
from models.errors import InvalidInputError
from models.notification import (
    PAGE_SIZE_OPTIONS,
    BarkConfig,
    ChannelConfig,
    EmailConfig,
    NotificationConfig,
    NotificationResult,
    SubscriptionSettings,
    WebhookConfig,
)
from models.subscription import VALID_CHANNELS, NotificationChannel
from repositories.config_repo import ConfigRepository
from services.notification_service import NotificationDispatcher
from utils.logger import get_logger

logger = get_logger(__name__)

_BOOL_FIELDS = {"enabled", "use_existing_key"}
# Optional text fields: an empty value clears them
_OPTIONAL_TEXT_FIELDS = {"sender_email", "existing_key_id", "server", "device_key"}


def _is_http_url(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def check_channel_config(config: ChannelConfig) -> list[str]:
    """Return every problem with a channel config's field values (empty when valid)."""
    errors = []
    for f in dataclass_fields(config):
        value = getattr(config, f.name)
        if f.name in _BOOL_FIELDS:
            if not isinstance(value, bool):
                errors.append(f"'{f.name}' must be on or off")
        elif f.name == "headers":
            if value is not None and not (
                isinstance(value, dict) and all(isinstance(k, str) and isinstance(v, str) for k, v in value.items())
            ):
                errors.append("'headers' must map header names to text values")
        elif not (isinstance(value, str) or (value is None and f.name in _OPTIONAL_TEXT_FIELDS)):
            errors.append(f"'{f.name}' must be text")
    if errors:
        return errors

    if isinstance(config, EmailConfig):
        if config.recipient_email and "@" not in config.recipient_email:
            errors.append(f"'{config.recipient_email}' is not an email address")
        if config.sender_email and "@" not in config.sender_email:
            errors.append(f"'{config.sender_email}' is not an email address")
    elif isinstance(config, WebhookConfig):
        if config.url and not _is_http_url(config.url):
            errors.append("Webhook url must start with http:// or https://")
        if config.method not in ("GET", "POST"):
            errors.append("Webhook method must be GET or POST")
    elif isinstance(config, BarkConfig):
        if config.use_existing_key and config.existing_key_id and config.existing_key_id not in BARK_KEYS:
            errors.append(f"No saved Bark key '{config.existing_key_id}' (see BARK_KEYS)")
        if config.server and not _is_http_url(config.server):
            errors.append("Bark server must start with http:// or https://")
    return errors


class SettingsService:
    """Reads and changes the global settings and the channel config."""

    def __init__(self, config_repo: Optional[ConfigRepository] = None,
                 dispatcher: Optional[NotificationDispatcher] = None):
        self.config_repo = config_repo or ConfigRepository()
        self.dispatcher = dispatcher or NotificationDispatcher()

    def get_settings(self) -> SubscriptionSettings:
        return self.config_repo.get_settings()

    def update_settings(self, **changes) -> SubscriptionSettings:
        """
        Change individual settings fields.

        Raises:
            InvalidInputError: Unknown field, negative reminder days or a page
                size outside PAGE_SIZE_OPTIONS.
        """
        current = self.config_repo.get_settings()
        errors = [f"Unknown setting '{key}'" for key in changes if not hasattr(current, key)]
        if changes.get("default_reminder_days", 0) < 0:
            errors.append("Default reminder days must be >= 0")
        if "page_size" in changes and changes["page_size"] not in PAGE_SIZE_OPTIONS:
            errors.append(f"Page size must be one of {', '.join(map(str, PAGE_SIZE_OPTIONS))}")
        if errors:
            raise InvalidInputError("; ".join(errors), errors)

        for key, value in changes.items():
            setattr(current, key, value)
        self.config_repo.set_settings(current)
        logger.info(f"Settings updated: {changes}")
        return current

    def get_notification_config(self) -> NotificationConfig:
        return self.config_repo.get_notification_config()

    def set_channel_enabled(self, channel: str, enabled: bool) -> NotificationConfig:
        """Switch one channel on or off, keeping its credentials."""
        channel = self._channel(channel)
        config = self.config_repo.get_notification_config()
        channel_config = config.for_channel(channel)
        channel_config.enabled = enabled
        config = config.with_channel(channel, channel_config)
        self.config_repo.set_notification_config(config)
        logger.info(f"Channel {channel.value} {'enabled' if enabled else 'disabled'}")
        return config

    def set_channel_config(self, channel: str, **changes: Any) -> NotificationConfig:
        """
        Change fields of one channel's config, e.g. bot_token and chat_id for
        telegram or url, method and headers for webhook.

        Empty text clears optional fields. Webhook methods are upper-cased.

        Raises:
            InvalidInputError: Listing unknown fields and invalid values.
                Nothing is saved in that case.
        """
        channel = self._channel(channel)
        if not changes:
            raise InvalidInputError("No fields to change")

        config = self.config_repo.get_notification_config()
        current = config.for_channel(channel)
        known = {f.name for f in dataclass_fields(current)}
        unknown = [f"Unknown {channel.value} field '{key}'" for key in changes if key not in known]
        if unknown:
            raise InvalidInputError("; ".join(unknown), unknown)

        for key in _OPTIONAL_TEXT_FIELDS & set(changes):
            if changes[key] == "":
                changes[key] = None
        if isinstance(changes.get("method"), str):
            changes["method"] = changes["method"].upper()

        updated = replace(current, **changes)
        errors = check_channel_config(updated)
        if errors:
            raise InvalidInputError("; ".join(errors), errors)

        config = config.with_channel(channel, updated)
        self.config_repo.set_notification_config(config)
        logger.info(f"Channel {channel.value} config updated: {', '.join(sorted(changes))}")
        return config

    async def test_channel(self, channel: str) -> NotificationResult:
        """Send a test message with the stored config of one channel."""
        channel = self._channel(channel)
        config = self.config_repo.get_notification_config()
        return await self.dispatcher.send_test(channel, config.for_channel(channel))

    @staticmethod
    def _channel(name: str) -> NotificationChannel:
        name = (name or "").strip().lower()
        if name not in VALID_CHANNELS:
            raise InvalidInputError(
                f"Unknown channel '{name}'. Use one of: {', '.join(sorted(VALID_CHANNELS))}"
            )
        return NotificationChannel(name)
