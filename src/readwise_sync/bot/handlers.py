"""
Telegram bot command handlers.

All handlers receive (update, context) from python-telegram-bot.
Bot data keys (set in build_bot_app / __main__):
  context.bot_data["engine"]        — SQLAlchemy engine
  context.bot_data["sync_service"]  — ReadwiseSyncService
  context.bot_data["owner_chat_id"] — chat that receives error reports

Sync progress and results are not replied here; they arrive through the
service's TelegramNotifier, the same way background syncs report.
"""
import html
import logging
import traceback

from sqlmodel import Session, select
from telegram import Update
from telegram.ext import ContextTypes

from readwise_sync.models.sync import SyncLog
from readwise_sync.sync.service import SyncOptions

logger = logging.getLogger(__name__)

_HELP = (
    "Readwise sync commands:\n"
    "/synclatest — import books and highlights changed since the last sync\n"
    "/syncall — re-import everything (only needed the first time)\n"
    "/status — last sync result and next scheduled run\n\n"
    "A background sync also runs every 30 minutes."
)


def _service(context: ContextTypes.DEFAULT_TYPE):
    return context.bot_data.get("sync_service")


async def handle_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/start — list commands."""
    await update.message.reply_text(_HELP)


async def handle_sync_latest(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/synclatest — incremental sync since the cursor, with notifications."""
    service = _service(context)
    if service is None:
        await update.message.reply_text("Sync is not available yet, try again shortly.")
        return
    await service.sync_highlights(SyncOptions(notify=True))


async def handle_sync_all(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/syncall — full resync ignoring the cursor, with notifications."""
    service = _service(context)
    if service is None:
        await update.message.reply_text("Sync is not available yet, try again shortly.")
        return
    await service.sync_highlights(SyncOptions(ignore_last_sync=True, notify=True))


async def handle_status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """/status — last SyncLog row, cursor, and next scheduled run."""
    engine = context.bot_data["engine"]
    service = _service(context)

    with Session(engine) as s:
        log = s.exec(select(SyncLog).order_by(SyncLog.started_at.desc())).first()

    lines = []
    if log is None:
        lines.append("No sync has run yet.")
    else:
        line = f"Last sync: {log.status} at {log.started_at:%Y-%m-%d %H:%M} UTC"
        if log.books_synced or log.highlights_synced:
            line += f" ({log.books_synced} books, {log.highlights_synced} highlights)"
        lines.append(line)
        if log.error_message:
            lines.append(f"Error: {log.error_message}")

    if service is not None:
        last_sync = service.cursor.read()
        lines.append(
            f"Caught up as of: {last_sync:%Y-%m-%d %H:%M} UTC" if last_sync else "Never synced."
        )
        next_run = service.timer.next_run_time()
        if next_run:
            lines.append(f"Next sync: {next_run:%Y-%m-%d %H:%M} UTC")

    await update.message.reply_text("\n".join(lines))


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Global PTB error handler — logs the exception and notifies the owner."""
    logger.exception("Unhandled exception", exc_info=context.error)

    chat_id = context.bot_data.get("owner_chat_id")
    if not chat_id:
        return

    tb = "".join(traceback.format_exception(type(context.error), context.error, context.error.__traceback__))
    # Telegram message limit is 4096 chars
    short_tb = tb[-3000:] if len(tb) > 3000 else tb
    await context.bot.send_message(
        chat_id=chat_id,
        text=f"⚠️ Unhandled error:\n<pre>{html.escape(short_tb)}</pre>",
        parse_mode="HTML",
    )
