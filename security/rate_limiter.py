"""
security/rate_limiter.py
-------------------------
Per-user rate limiting for bot commands.
Limits how many commands a user can send within a sliding time window.
"""

import time
from collections import defaultdict, deque
from functools import wraps
from typing import Callable

from telegram import Update
from telegram.ext import ContextTypes

from config import RATE_LIMIT_MESSAGES, RATE_LIMIT_WINDOW_SECONDS
from utils.logger import get_logger

logger = get_logger(__name__)

# {user_id: deque of monotonic timestamps}
_user_timestamps: dict[int, deque] = defaultdict(deque)


def allow(user_id: int, now: float | None = None) -> bool:
    """Record one command for `user_id` and tell whether it is within the limit."""
    now = time.monotonic() if now is None else now
    stamps = _user_timestamps[user_id]
    while stamps and stamps[0] <= now - RATE_LIMIT_WINDOW_SECONDS:
        stamps.popleft()
    if len(stamps) >= RATE_LIMIT_MESSAGES:
        return False
    stamps.append(now)
    return True


def rate_limited(func: Callable):
    """
    Decorator that enforces rate limiting per user.

    Configuration (via .env):
        RATE_LIMIT_MESSAGES: Max commands per window (default: 30).
        RATE_LIMIT_WINDOW_SECONDS: Window duration in seconds (default: 60).
    """
    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
        user = update.effective_user
        if not user:
            return

        if not allow(user.id):
            logger.warning(f"⚠️ Rate limit hit for user {user.id}")
            if update.effective_message:
                await update.effective_message.reply_text(
                    "⚠️ Too many commands. Please wait a moment and try again."
                )
            return

        return await func(update, context, *args, **kwargs)

    return wrapper
