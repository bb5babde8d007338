"""
Telegram bot application factory.

Builds and configures the python-telegram-bot Application with the sync
command handlers registered. The sync service is attached later via
bot_data["sync_service"], because its notifier needs this app's bot.
"""
from typing import Optional

from telegram.ext import Application, CommandHandler, filters

from readwise_sync.bot.handlers import (
    error_handler,
    handle_start,
    handle_status,
    handle_sync_all,
    handle_sync_latest,
)


def build_bot_app(token: str, engine, owner_chat_id: Optional[int] = None) -> Application:
    """
    Build and return the PTB Application.

    Args:
        token: Telegram bot token.
        engine: SQLAlchemy engine (SQLModel).
        owner_chat_id: Only this chat may run commands; also receives
            sync notifications and error reports.

    Returns:
        Configured Application (not yet started).
    """
    app = Application.builder().token(token).build()

    app.bot_data["engine"] = engine
    app.bot_data["owner_chat_id"] = owner_chat_id
    app.bot_data["sync_service"] = None

    owner_only = filters.Chat(chat_id=owner_chat_id) if owner_chat_id else None

    app.add_handler(CommandHandler("start", handle_start, filters=owner_only))
    app.add_handler(CommandHandler("status", handle_status, filters=owner_only))
    # block=False so a long import doesn't stall other updates
    app.add_handler(
        CommandHandler("synclatest", handle_sync_latest, filters=owner_only, block=False)
    )
    app.add_handler(
        CommandHandler("syncall", handle_sync_all, filters=owner_only, block=False)
    )

    app.add_error_handler(error_handler)

    return app
