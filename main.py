"""
main.py
-------
Entry point for the SubWatch Telegram bot.

Responsibilities:
    - Initialize the database connection pool and schema.
    - Configure and start the Telegram bot with all handlers.
    - Schedule the periodic reminder check (the wake-up trigger).
"""

from telegram import BotCommand
from telegram.ext import (
    Application,
    CommandHandler,
    MessageHandler,
    filters,
)

from config import REMINDER_INTERVAL_MINUTES, TELEGRAM_BOT_TOKEN
from db.connection import close_pool, init_pool
from db.init_db import create_tables
from handlers.export_handler import (
    export_command,
    export_csv_command,
    export_excel_command,
    import_document,
)
from handlers.settings_handler import (
    channel_command,
    channel_set_command,
    channels_command,
    settings_command,
    test_channel_command,
)
from handlers.start_handler import help_command, myid_command, start_command
from handlers.subscription_handler import (
    add_sub_command,
    check_command,
    delete_sub_command,
    renew_command,
    subs_command,
    toggle_command,
)
from services.reminder_service import ReminderScheduler, reminder_job
from utils.logger import get_logger

logger = get_logger(__name__)


async def set_bot_commands(application: Application) -> None:
    """Register bot commands menu in Telegram on startup."""
    commands = [
        BotCommand("start", "🚀 Start the bot"),
        BotCommand("help", "📖 Show help"),
        BotCommand("subs", "📋 List subscriptions"),
        BotCommand("add_sub", "➕ Add a subscription"),
        BotCommand("renew", "🔁 Renew a subscription"),
        BotCommand("toggle", "⏯️ Enable / disable"),
        BotCommand("delete_sub", "🗑️ Delete a subscription"),
        BotCommand("check", "🔎 Run a reminder check now"),
        BotCommand("settings", "⚙️ Reminder settings"),
        BotCommand("channels", "📣 Notification channels"),
        BotCommand("channel", "📣 Switch a channel on/off"),
        BotCommand("channel_set", "🔑 Set channel credentials"),
        BotCommand("test_channel", "🧪 Send a test notification"),
        BotCommand("export", "💾 JSON backup"),
        BotCommand("export_csv", "📄 Export CSV"),
        BotCommand("export_excel", "📊 Export Excel"),
        BotCommand("myid", "🆔 Your Telegram ID"),
    ]
    await application.bot.set_my_commands(commands)
    logger.info("Bot commands menu registered successfully.")


def main() -> None:
    """Initialize and run the bot."""

    # ── 1. Database setup ─────────────────────────────────
    logger.info("Initializing database...")
    init_pool()
    create_tables()

    # ── 2. Build the Telegram application ─────────────────
    logger.info("Starting Telegram bot...")
    app = Application.builder().token(TELEGRAM_BOT_TOKEN).post_init(set_bot_commands).build()
    scheduler = ReminderScheduler()
    app.bot_data["scheduler"] = scheduler

    # ── 3. Register command handlers ──────────────────────
    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("myid", myid_command))
    app.add_handler(CommandHandler("subs", subs_command))
    app.add_handler(CommandHandler("add_sub", add_sub_command))
    app.add_handler(CommandHandler("renew", renew_command))
    app.add_handler(CommandHandler("toggle", toggle_command))
    app.add_handler(CommandHandler("delete_sub", delete_sub_command))
    app.add_handler(CommandHandler("check", check_command))
    app.add_handler(CommandHandler("settings", settings_command))
    app.add_handler(CommandHandler("channels", channels_command))
    app.add_handler(CommandHandler("channel", channel_command))
    app.add_handler(CommandHandler("channel_set", channel_set_command))
    app.add_handler(CommandHandler("test_channel", test_channel_command))
    app.add_handler(CommandHandler("export", export_command))
    app.add_handler(CommandHandler("export_csv", export_csv_command))
    app.add_handler(CommandHandler("export_excel", export_excel_command))

    # ── 4. Backup restore: uploaded .json documents ───────
    app.add_handler(MessageHandler(filters.Document.FileExtension("json"), import_document))

    # ── 5. Schedule the reminder check ────────────────────
    job_queue = app.job_queue
    if job_queue:
        job_queue.run_repeating(
            reminder_job,
            interval=REMINDER_INTERVAL_MINUTES * 60,
            first=10,
            name="subscription_reminders",
            data=scheduler,
        )
        logger.info(f"Scheduled reminder check every {REMINDER_INTERVAL_MINUTES} min")
    else:
        logger.warning("JobQueue unavailable (install python-telegram-bot[job-queue]); use /check")

    # ── 6. Start polling ──────────────────────────────────
    logger.info("🚀 SubWatch is running! Press Ctrl+C to stop.")
    app.run_polling(drop_pending_updates=True, allowed_updates=["message"])

    # ── 7. Cleanup on shutdown ────────────────────────────
    close_pool()
    logger.info("SubWatch stopped.")


if __name__ == "__main__":
    main()
