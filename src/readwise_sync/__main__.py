"""
Main entrypoint: runs the recurring Readwise sync (and the Telegram bot,
if a token is configured) in one process.

FastAPI runs separately under uvicorn (on-demand sync + status).

Usage:
    python -m readwise_sync              # scheduler + bot
    python -m readwise_sync sync         # one incremental sync, then exit
    python -m readwise_sync sync --all   # one full resync, then exit
    uvicorn readwise_sync.api.main:app --host 0.0.0.0 --port 8000  # starts API
"""
import argparse
import asyncio
import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


async def _run_once(full: bool) -> str:
    from readwise_sync.db.engine import get_engine
    from readwise_sync.scheduler.jobs import build_sync_service
    from readwise_sync.sync.service import SyncOptions

    # The scheduler is never started here, so the re-armed timer is discarded on exit
    service, _timer = build_sync_service(get_engine())
    return await service.sync_highlights(SyncOptions(ignore_last_sync=full, notify=True))


async def _run_service() -> None:
    from readwise_sync.bot.app import build_bot_app
    from readwise_sync.config import get_settings
    from readwise_sync.db.engine import get_engine
    from readwise_sync.scheduler.jobs import (
        build_scheduler,
        build_sync_service,
        start_sync_schedule,
    )
    from readwise_sync.sync.notifier import LogNotifier, TelegramNotifier

    settings = get_settings()
    engine = get_engine()

    if not settings.readwise_api_key:
        logger.warning(
            "READWISE_API_KEY is not set; sync cycles will be skipped until it is."
        )

    bot_app = None
    notifier = LogNotifier()
    if settings.telegram_bot_token:
        bot_app = build_bot_app(
            token=settings.telegram_bot_token,
            engine=engine,
            owner_chat_id=settings.telegram_allowed_user_id,
        )
        notifier = TelegramNotifier(bot_app.bot, settings.telegram_allowed_user_id)
    else:
        logger.info("TELEGRAM_BOT_TOKEN not set — bot commands disabled.")

    scheduler = build_scheduler()
    service, timer = build_sync_service(engine, scheduler=scheduler, notifier=notifier)
    scheduler.start()
    first_run = start_sync_schedule(service, timer)
    logger.info(
        "Scheduler started (every %d min, first sync at %s)",
        settings.sync_interval_minutes,
        first_run.isoformat(),
    )

    try:
        if bot_app is None:
            await asyncio.Event().wait()
            return

        bot_app.bot_data["sync_service"] = service
        logger.info("Starting Telegram bot...")
        async with bot_app:
            await bot_app.start()
            await bot_app.updater.start_polling(drop_pending_updates=True)
            logger.info("Bot is running. Press Ctrl+C to stop.")
            try:
                await asyncio.Event().wait()
            finally:
                await bot_app.updater.stop()
                await bot_app.stop()
    except (KeyboardInterrupt, SystemExit, asyncio.CancelledError):
        logger.info("Shutting down...")
    finally:
        timer.cancel()
        scheduler.shutdown(wait=False)
        logger.info("Goodbye.")


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(prog="readwise_sync")
    sub = parser.add_subparsers(dest="command")
    sync_parser = sub.add_parser("sync", help="Run one sync cycle and exit")
    sync_parser.add_argument(
        "--all",
        action="store_true",
        help="Ignore the last sync time and re-import everything",
    )
    args = parser.parse_args(argv)

    if args.command == "sync":
        from readwise_sync.models.sync import STATUS_SUCCESS

        status = asyncio.run(_run_once(full=args.all))
        logger.info("Sync finished: %s", status)
        raise SystemExit(0 if status == STATUS_SUCCESS else 1)

    try:
        asyncio.run(_run_service())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
