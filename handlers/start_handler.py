"""
handlers/start_handler.py
--------------------------
Handles /start, /help and /myid.
"""

from telegram import Update
from telegram.ext import ContextTypes

from security.auth import authorized_only
from security.rate_limiter import rate_limited
from utils.logger import get_logger

logger = get_logger(__name__)

HELP_TEXT = """
🤖 *SubWatch*
Keeps track of your subscriptions and reminds you before they expire.

*📋 Subscriptions:*
/subs - list, most urgent first
/add\\_sub - add a subscription
/renew - advance expiry by one cycle
/toggle - enable / disable
/delete\\_sub - delete

*🔔 Reminders:*
/check - run a reminder check now
/settings - reminder settings
/channels - notification channels
/channel - switch a channel on/off
/channel\\_set <name> key=value - set channel credentials
/test\\_channel - send a test notification

*💾 Backup:*
/export - JSON backup (send the file back to restore)
/export\\_csv - CSV list
/export\\_excel - Excel list

/myid - your Telegram ID
"""


@authorized_only
@rate_limited
async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command - show welcome message."""
    user = update.effective_user
    logger.info(f"User {user.id} ({user.first_name}) started the bot.")

    await update.message.reply_text(
        f"Hi {user.first_name}! 👋\n"
        f"I watch your subscriptions and remind you before they expire.\n\n"
        f"Type /help to see all commands."
    )


@authorized_only
@rate_limited
async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command - show all available commands."""
    await update.message.reply_text(HELP_TEXT, parse_mode="Markdown")


@authorized_only
async def myid_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /myid command - show user's Telegram ID for whitelisting."""
    user = update.effective_user
    await update.message.reply_text(
        f"🆔 Your ID: `{user.id}`\n"
        f"Add it to `ALLOWED_USER_IDS` in `.env` to lock the bot to you.",
        parse_mode="Markdown",
    )
