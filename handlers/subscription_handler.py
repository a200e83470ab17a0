"""
handlers/subscription_handler.py
--------------------------------
Handles subscription list commands: list, add, renew, enable/disable, delete,
and a manual reminder check.
"""

from datetime import date

from telegram import Update
from telegram.helpers import escape_markdown
from telegram.ext import ContextTypes

from models.errors import InvalidInputError, NotFoundError, SubscriptionError
from models.subscription import Subscription, SubscriptionStatus
from services.reminder_service import ReminderScheduler
from services.settings_service import SettingsService
from services.status_service import calculate_status, is_expiring_soon, remaining_days
from services.subscription_service import SubscriptionService
from security.auth import authorized_only
from security.rate_limiter import rate_limited
from utils.dates import end_of_day, format_date, now_ms
from utils.logger import get_logger
from utils.lunar import lunar_date

logger = get_logger(__name__)
subscription_service = SubscriptionService()
settings_service = SettingsService()

_TYPE_MAP = {
    "video": "video", "streaming": "video",
    "music": "music",
    "cloud": "cloud", "storage": "cloud",
    "software": "software", "app": "software", "license": "software",
    "domain": "domain",
    "server": "server", "hosting": "server", "vps": "server",
    "other": "other",
}

_CYCLE_MAP = {
    "monthly": "monthly", "month": "monthly",
    "quarterly": "quarterly", "quarter": "quarterly",
    "semi-annual": "semi-annual", "semiannual": "semi-annual", "half-year": "semi-annual",
    "annual": "annual", "yearly": "annual", "year": "annual",
    "one-time": "one-time", "once": "one-time", "onetime": "one-time",
}

_STATUS_ICONS = {
    SubscriptionStatus.ACTIVE: "🟢",
    SubscriptionStatus.DISABLED: "⏸️",
    SubscriptionStatus.EXPIRED: "🔴",
}

ADD_USAGE = (
    "📝 *Add a subscription*\n\n"
    "*Format:*\n"
    "`/add_sub name | type | cycle | YYYY-MM-DD [| reminder days] [| channels]`\n\n"
    "*Examples:*\n"
    "• `/add_sub Netflix | video | monthly | 2026-03-01`\n"
    "• `/add_sub example.com | domain | annual | 2026-11-20 | 30 | telegram,email`\n"
    "• `/add_sub VPN | other:vpn | one-time | 2026-06-30 | 3`\n\n"
    "*Types:* video, music, cloud, software, domain, server, other[:label]\n"
    "*Cycles:* monthly, quarterly, semi-annual, annual, one-time"
)


def _parse_manual(text: str) -> dict:
    """
    Parse the structured add format:
      name | type | cycle | YYYY-MM-DD [| reminder days] [| channel,channel]

    Raises:
        InvalidInputError: Listing every part that could not be understood.
    """
    parts = [p.strip() for p in text.split("|")]
    if len(parts) < 4:
        raise InvalidInputError("Expected at least: name | type | cycle | date")

    errors = []
    raw_type, _, custom_type = parts[1].partition(":")
    sub_type = _TYPE_MAP.get(raw_type.strip().lower())
    if not sub_type:
        errors.append(f"Unknown type '{parts[1]}'")
    cycle = _CYCLE_MAP.get(parts[2].lower())
    if not cycle:
        errors.append(f"Unknown cycle '{parts[2]}'")

    expiry = None
    try:
        expiry = end_of_day(date.fromisoformat(parts[3]))
    except (ValueError, OverflowError):
        errors.append(f"Invalid date '{parts[3]}', use YYYY-MM-DD")

    reminder_days = None
    if len(parts) >= 5 and parts[4]:
        if parts[4].isdigit():
            reminder_days = int(parts[4])
        else:
            errors.append(f"Reminder days must be a whole number, got '{parts[4]}'")

    channels = []
    if len(parts) >= 6 and parts[5]:
        channels = [c.strip().lower() for c in parts[5].split(",") if c.strip()]

    if errors:
        raise InvalidInputError("; ".join(errors), errors)

    return {
        "name": parts[0],
        "type": sub_type,
        "custom_type": custom_type.strip() or None,
        "cycle": cycle,
        "expiry_date": expiry,
        "reminder_days": reminder_days,
        "notification_channels": channels,
    }


def format_subscription_line(sub: Subscription, now: int, show_lunar: bool = False) -> str:
    """One Markdown list line: status icon, name, type, expiry and remaining days."""
    status = calculate_status(sub, now)
    icon = "🟡" if is_expiring_soon(sub, now) else _STATUS_ICONS[status]
    days = remaining_days(sub.expiry_date, now)
    if days < 0:
        when = f"expired {abs(days)}d ago"
    elif days == 0:
        when = "expires today"
    else:
        when = f"{days}d left"
    expiry = format_date(sub.expiry_date)
    lunar = lunar_date(sub.expiry_date) if show_lunar else None
    if lunar:
        expiry = f"{expiry} ({lunar})"
    name = escape_markdown(sub.name, version=1)
    display_type = escape_markdown(sub.display_type, version=1)
    return (
        f"{icon} *{name}* ({display_type}, {sub.cycle.value})\n"
        f"    📅 {expiry} · {when}\n"
        f"    🔖 `{sub.id}`"
    )


def _error_text(e: SubscriptionError) -> str:
    if isinstance(e, NotFoundError):
        return f"⚠️ Subscription {e.subscription_id} not found."
    if isinstance(e, InvalidInputError):
        return "⚠️ " + "\n⚠️ ".join(e.details)
    logger.error(f"Command failed: {e.message}")
    return "❌ Something went wrong with storage. Please try again."


@authorized_only
@rate_limited
async def subs_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /subs [page] - list subscriptions, most urgent first."""
    page = 1
    if context.args and context.args[0].isdigit():
        page = int(context.args[0])

    try:
        now = now_ms()
        subs = subscription_service.list_sorted(now)
        settings = settings_service.get_settings()
    except SubscriptionError as e:
        await update.message.reply_text(_error_text(e))
        return

    if not subs:
        await update.message.reply_text("📭 No subscriptions yet. Use /add_sub to add one.")
        return

    items, total_pages = subscription_service.page(subs, page, settings.page_size)
    page = min(max(page, 1), total_pages)
    lines = [f"📋 *Subscriptions* ({len(subs)}) - page {page}/{total_pages}\n"]
    lines.extend(format_subscription_line(s, now, settings.show_lunar_date) for s in items)
    if page < total_pages:
        lines.append(f"\n➡️ Next: `/subs {page + 1}`")
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
@rate_limited
async def add_sub_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /add_sub - add a new subscription from the structured format."""
    if not context.args:
        await update.message.reply_text(ADD_USAGE, parse_mode="Markdown")
        return

    try:
        parsed = _parse_manual(" ".join(context.args))
        sub = subscription_service.create(**parsed)
    except SubscriptionError as e:
        await update.message.reply_text(_error_text(e))
        return

    channels = ", ".join(c.value for c in sub.sorted_channels()) or "none"
    await update.message.reply_text(
        f"✅ Added subscription:\n"
        f"  📌 {sub.name} ({sub.display_type})\n"
        f"  🔄 Cycle: {sub.cycle.value}\n"
        f"  📅 Expires: {format_date(sub.expiry_date)}\n"
        f"  ⏰ Reminder: {sub.reminder_days} day(s) before\n"
        f"  📣 Channels: {channels}\n"
        f"  🔖 ID: {sub.id}"
    )


async def _with_id(update: Update, context: ContextTypes.DEFAULT_TYPE, usage: str):
    if not context.args:
        await update.message.reply_text(f"⚠️ Usage: {usage}")
        return None
    return context.args[0].strip()


@authorized_only
@rate_limited
async def renew_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /renew <id> - advance the expiry by one cycle."""
    sub_id = await _with_id(update, context, "/renew <id>")
    if not sub_id:
        return
    try:
        sub = subscription_service.renew(sub_id)
    except SubscriptionError as e:
        await update.message.reply_text(_error_text(e))
        return
    await update.message.reply_text(f"🔁 Renewed '{sub.name}', new expiry: {format_date(sub.expiry_date)}")


@authorized_only
@rate_limited
async def toggle_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /toggle <id> - enable or disable a subscription."""
    sub_id = await _with_id(update, context, "/toggle <id>")
    if not sub_id:
        return
    try:
        sub = subscription_service.toggle_enabled(sub_id)
    except SubscriptionError as e:
        await update.message.reply_text(_error_text(e))
        return
    state = "enabled ✅" if sub.is_enabled else "disabled ⏸️"
    await update.message.reply_text(f"'{sub.name}' is now {state}.")


@authorized_only
@rate_limited
async def delete_sub_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete_sub <id> - delete a subscription."""
    sub_id = await _with_id(update, context, "/delete_sub <id>")
    if not sub_id:
        return
    try:
        subscription_service.delete(sub_id)
    except SubscriptionError as e:
        await update.message.reply_text(_error_text(e))
        return
    await update.message.reply_text(f"🗑️ Deleted subscription {sub_id}.")


@authorized_only
@rate_limited
async def check_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /check - run one reminder cycle now and report what happened."""
    scheduler: ReminderScheduler = context.bot_data["scheduler"]
    report = await scheduler.run_cycle()
    lines = [f"🔎 {report.summary()}"]
    for sub_id, results in report.reminded.items():
        for r in results:
            mark = "✅" if r.success else f"❌ {r.error}"
            lines.append(f"  {sub_id} → {r.channel}: {mark}")
    await update.message.reply_text("\n".join(lines))
