"""
handlers/settings_handler.py
----------------------------
Handles reminder settings and notification channel commands.
"""

from dataclasses import fields as dataclass_fields

from telegram import Update
from telegram.ext import ContextTypes

from models.errors import InvalidInputError, SubscriptionError
from models.notification import PAGE_SIZE_OPTIONS
from models.subscription import CHANNEL_ORDER, NotificationChannel
from services.settings_service import SettingsService
from security.auth import authorized_only
from security.rate_limiter import rate_limited
from utils.logger import get_logger

logger = get_logger(__name__)
settings_service = SettingsService()

_ON_OFF = {"on": True, "off": False, "yes": True, "no": False, "true": True, "false": False}

SETTINGS_USAGE = (
    "⚙️ Usage:\n"
    "  /settings daily on|off - remind every day inside the window\n"
    "  /settings days N - default reminder days for new subscriptions\n"
    f"  /settings page N - list page size ({', '.join(map(str, PAGE_SIZE_OPTIONS))})\n"
    "  /settings lunar on|off - show lunar dates"
)


def _parse_setting(key: str, value: str) -> dict:
    """Map a '/settings <key> <value>' pair to a settings field change, or {} if invalid."""
    key = key.lower()
    if key in ("daily", "lunar") and value.lower() in _ON_OFF:
        field = "daily_reminder" if key == "daily" else "show_lunar_date"
        return {field: _ON_OFF[value.lower()]}
    if key in ("days", "page") and value.isdigit():
        field = "default_reminder_days" if key == "days" else "page_size"
        return {field: int(value)}
    return {}


@authorized_only
@rate_limited
async def settings_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /settings [key value] - show or change reminder settings."""
    try:
        if context.args:
            change = _parse_setting(context.args[0], context.args[1]) if len(context.args) >= 2 else {}
            if not change:
                await update.message.reply_text(SETTINGS_USAGE)
                return
            settings = settings_service.update_settings(**change)
        else:
            settings = settings_service.get_settings()
    except SubscriptionError as e:
        await update.message.reply_text(f"⚠️ {e.message}")
        return

    await update.message.reply_text(
        "⚙️ Settings:\n"
        f"  🔁 Daily reminder: {'on' if settings.daily_reminder else 'off (once per window)'}\n"
        f"  ⏰ Default reminder days: {settings.default_reminder_days}\n"
        f"  📄 Page size: {settings.page_size}\n"
        f"  🌙 Lunar dates: {'on' if settings.show_lunar_date else 'off'}"
    )


@authorized_only
@rate_limited
async def channels_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /channels - show which notification channels are enabled."""
    try:
        config = settings_service.get_notification_config()
    except SubscriptionError as e:
        await update.message.reply_text(f"⚠️ {e.message}")
        return

    lines = ["📣 Notification channels:"]
    for channel in CHANNEL_ORDER:
        state = "✅ on" if config.for_channel(channel).enabled else "❌ off"
        lines.append(f"  {channel.value}: {state}")
    lines.append("\nChange credentials with /channel_set <name> key=value ...")
    await update.message.reply_text("\n".join(lines))


@authorized_only
@rate_limited
async def channel_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /channel <name> on|off - switch one channel."""
    if len(context.args or []) < 2 or context.args[1].lower() not in _ON_OFF:
        await update.message.reply_text("⚠️ Usage: /channel <telegram|email|webhook|bark> on|off")
        return

    enabled = _ON_OFF[context.args[1].lower()]
    try:
        settings_service.set_channel_enabled(context.args[0], enabled)
    except SubscriptionError as e:
        await update.message.reply_text(f"⚠️ {e.message}")
        return
    await update.message.reply_text(f"📣 {context.args[0].lower()} is now {'on' if enabled else 'off'}.")


@authorized_only
@rate_limited
async def test_channel_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /test_channel <name> - send a test notification."""
    if not context.args:
        await update.message.reply_text("⚠️ Usage: /test_channel <telegram|email|webhook|bark>")
        return

    try:
        result = await settings_service.test_channel(context.args[0])
    except SubscriptionError as e:
        await update.message.reply_text(f"⚠️ {e.message}")
        return

    if result.success:
        await update.message.reply_text(f"✅ Test notification sent via {result.channel}.")
    else:
        await update.message.reply_text(f"❌ {result.channel} failed: {result.error}")


_SECRET_FIELDS = {"bot_token", "resend_api_key", "device_key"}

CHANNEL_SET_USAGE = (
    "⚠️ Usage: /channel_set <name> key=value ...\n"
    "  telegram: bot_token chat_id\n"
    "  email: resend_api_key recipient_email sender_email\n"
    "  webhook: url method headers=Name:Value;Name2:Value2\n"
    "  bark: use_existing_key existing_key_id server device_key\n"
    "An empty value (key=) clears optional fields."
)


def _parse_channel_fields(args: list[str]) -> dict:
    """
    Parse 'key=value' arguments of /channel_set into channel config fields.

    Raises:
        InvalidInputError: An argument without '=' or a bad on/off or headers value.
    """
    fields = {}
    for arg in args:
        key, sep, value = arg.partition("=")
        key = key.strip().lower()
        if not sep or not key:
            raise InvalidInputError(f"Expected key=value, got '{arg}'")
        if key in ("enabled", "use_existing_key"):
            if value.lower() not in _ON_OFF:
                raise InvalidInputError(f"'{key}' must be on or off")
            fields[key] = _ON_OFF[value.lower()]
        elif key == "headers":
            headers = {}
            for pair in filter(None, value.split(";")):
                name, sep, header_value = pair.partition(":")
                if not sep or not name.strip():
                    raise InvalidInputError(f"Header '{pair}' must be Name:Value")
                headers[name.strip()] = header_value.strip()
            fields[key] = headers or None
        else:
            fields[key] = value
    return fields


def _masked(key: str, value) -> str:
    if value in (None, "", {}):
        return "-"
    if key in _SECRET_FIELDS:
        return "set"
    if key == "headers":
        return ", ".join(value)
    return str(value)


@authorized_only
@rate_limited
async def channel_set_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /channel_set <name> key=value ... - change a channel's credentials."""
    if len(context.args or []) < 2:
        await update.message.reply_text(CHANNEL_SET_USAGE)
        return

    name = context.args[0].lower()
    try:
        fields = _parse_channel_fields(context.args[1:])
        config = settings_service.set_channel_config(name, **fields)
    except SubscriptionError as e:
        await update.message.reply_text(f"⚠️ {e.message}")
        return

    channel_config = config.for_channel(NotificationChannel(name))
    lines = [f"📣 {name} updated:"]
    for f in dataclass_fields(channel_config):
        lines.append(f"  {f.name}: {_masked(f.name, getattr(channel_config, f.name))}")
    await update.message.reply_text("\n".join(lines))
