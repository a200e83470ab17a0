"""
security/auth.py
-----------------
Owner-only access for the bot. Subscriptions, channel credentials and
backups all belong to the whitelisted owner(s).
"""

from functools import wraps
from typing import Callable

from telegram import Update
from telegram.ext import ContextTypes

from config import ALLOWED_USER_IDS
from utils.logger import get_logger

logger = get_logger(__name__)


def is_authorized(user_id: int) -> bool:
    """Empty whitelist means dev mode: everyone is allowed."""
    return not ALLOWED_USER_IDS or user_id in ALLOWED_USER_IDS


def authorized_only(func: Callable):
    """
    Decorator that restricts a handler to whitelisted users only.

    Usage:
        @authorized_only
        async def my_handler(update, context):
            ...
    """
    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
        user = update.effective_user
        if not user:
            return

        if not is_authorized(user.id):
            logger.warning(
                f"🚫 Unauthorized access attempt: user_id={user.id}, username={user.username}"
            )
            if update.effective_message:
                await update.effective_message.reply_text("⛔ Sorry, this bot is private.")
            return

        return await func(update, context, *args, **kwargs)

    return wrapper
