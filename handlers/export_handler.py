"""
handlers/export_handler.py
---------------------------
Handles backup/restore and spreadsheet exports.
Delegates to ExportService.
"""

from telegram import Update
from telegram.ext import ContextTypes

from services.export_service import ExportService, ImportMode
from security.auth import authorized_only
from security.rate_limiter import rate_limited
from utils.dates import format_date, now_ms
from utils.logger import get_logger

logger = get_logger(__name__)
export_service = ExportService()

MAX_IMPORT_BYTES = 5 * 1024 * 1024


@authorized_only
@rate_limited
async def export_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /export - send the full configuration as a JSON backup."""
    try:
        now = now_ms()
        payload = export_service.export_config(now).encode("utf-8")
        await update.message.reply_document(
            document=payload,
            filename=export_service.generate_export_filename(now),
            caption="💾 Subscriptions backup. Send it back to restore (caption 'merge' to merge).",
        )
    except Exception as e:
        logger.error(f"JSON export failed: {e}")
        await update.message.reply_text("❌ Export failed. Please try again.")


@authorized_only
@rate_limited
async def export_csv_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /export_csv - send the subscription list as CSV."""
    await update.message.reply_text("📄 Preparing CSV file...")
    try:
        now = now_ms()
        buffer = export_service.export_csv(now)
        await update.message.reply_document(
            document=buffer,
            filename=f"subscriptions_{format_date(now)}.csv",
            caption="📊 Subscriptions - CSV",
        )
    except Exception as e:
        logger.error(f"CSV export failed: {e}")
        await update.message.reply_text("❌ Export failed. Please try again.")


@authorized_only
@rate_limited
async def export_excel_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /export_excel - send the subscription list as Excel."""
    await update.message.reply_text("📊 Preparing Excel file...")
    try:
        now = now_ms()
        buffer = export_service.export_excel(now)
        await update.message.reply_document(
            document=buffer,
            filename=f"subscriptions_{format_date(now)}.xlsx",
            caption="📊 Subscriptions - Excel",
        )
    except Exception as e:
        logger.error(f"Excel export failed: {e}")
        await update.message.reply_text("❌ Export failed. Please try again.")


@authorized_only
@rate_limited
async def import_document(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle an uploaded .json backup.
    Caption 'merge' keeps existing subscriptions and skips name clashes;
    anything else overwrites the whole list.
    """
    document = update.message.document
    if document.file_size and document.file_size > MAX_IMPORT_BYTES:
        await update.message.reply_text("⚠️ File too large to import.")
        return

    caption = (update.message.caption or "").strip().lower()
    mode = ImportMode.MERGE if caption.startswith("merge") else ImportMode.OVERWRITE

    tg_file = await document.get_file()
    raw = await tg_file.download_as_bytearray()
    try:
        text = bytes(raw).decode("utf-8-sig")
    except UnicodeDecodeError:
        text = ""

    result = export_service.import_config(text, mode)

    if not result.success:
        shown = result.errors[:15]
        more = len(result.errors) - len(shown)
        lines = ["❌ Import rejected, nothing was changed:"] + [f"  • {e}" for e in shown]
        if more > 0:
            lines.append(f"  … and {more} more")
        await update.message.reply_text("\n".join(lines))
        return

    lines = [
        f"✅ Import finished ({mode.value}):",
        f"  📥 Imported: {result.imported_count}",
        f"  ⏭️ Skipped (name already exists): {result.skipped_count}",
    ]
    lines.extend(f"  ⚠️ {w}" for w in result.warnings)
    await update.message.reply_text("\n".join(lines))
