"""
ReadwiseSyncService: one incremental sync cycle, end to end.

Flow for a cycle:
  1. Create SyncLog (status="running")
  2. Read the API key from settings; if missing, notify and stop
  3. Resolve the window: full history if ignore_last_sync or no cursor,
     else everything updated since the cursor
  4. Fetch from Readwise and classify (success / auth failure / failure)
  5. On success: import books + highlights
  6. Update SyncLog with the final status
  7. On success: advance the cursor to now

Whatever happens in 1-7 (including an exception), the next cycle is
scheduled one interval out before sync_highlights() returns. Nothing is
raised to the caller.

The cursor only moves after a successful fetch, and it moves to the wall
clock time of completion rather than the newest record's timestamp. An
empty successful fetch still advances it.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlmodel import Session

from readwise_sync.config import Settings, get_settings
from readwise_sync.models.sync import (
    STATUS_AUTH_ERROR,
    STATUS_ERROR,
    STATUS_RUNNING,
    STATUS_SKIPPED,
    STATUS_SUCCESS,
    SyncLog,
)
from readwise_sync.readwise.importer import ImportResult, import_books_and_highlights
from readwise_sync.sync.clock import utcnow
from readwise_sync.sync.cursor import SyncCursor, SyncedStorage
from readwise_sync.sync.notifier import LogNotifier, Notifier
from readwise_sync.sync.outcome import (
    ExportAuthFailure,
    ExportFailure,
    fetch_outcome,
)

logger = logging.getLogger(__name__)

NO_API_KEY_MESSAGE = (
    "No Readwise API key set. Please follow the instructions in the plugin settings."
)
INVALID_API_KEY_MESSAGE = (
    "Readwise API key is invalid. Please follow the instructions in the plugin settings."
)
IMPORTING_MESSAGE = "Importing books and highlights..."
FINISHED_MESSAGE = "Finished importing books and highlights."
NOTHING_NEW_MESSAGE = "No new books or highlights to import."
FAILED_MESSAGE = "Failed to sync Readwise highlights."


@dataclass(frozen=True)
class SyncOptions:
    """Per-invocation flags. Built fresh by each caller, never persisted."""

    ignore_last_sync: bool = False
    notify: bool = False


class ReadwiseSyncService:
    """Runs sync cycles and keeps the single recurring timer armed."""

    def __init__(
        self,
        client,
        engine,
        timer,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
        cursor: Optional[SyncCursor] = None,
        clock=utcnow,
        importer=import_books_and_highlights,
    ):
        """
        Args:
            client: ReadwiseClient instance (or AsyncMock in tests).
            engine: SQLAlchemy engine (SQLModel create_engine result).
            timer: SyncTimer that owns the next scheduled cycle.
            notifier: Where user-visible messages go. Defaults to the log.
            settings: Source of the API key. Defaults to get_settings().
            cursor: SyncCursor. Defaults to one backed by `engine`.
            clock: Callable returning the current aware UTC datetime.
            importer: async (engine, books) -> ImportResult.
        """
        self.client = client
        self.engine = engine
        self.timer = timer
        self.notifier = notifier or LogNotifier()
        self.settings = settings or get_settings()
        self.cursor = cursor or SyncCursor(SyncedStorage(engine))
        self.clock = clock
        self.importer = importer

    async def sync_highlights(self, options: Optional[SyncOptions] = None) -> str:
        """
        Run one sync cycle, then re-arm the timer.

        Args:
            options: SyncOptions; defaults to a silent incremental sync.

        Returns:
            The cycle's SyncLog status ("success", "skipped", "auth_error", "error").
        """
        options = options or SyncOptions()
        log: Optional[SyncLog] = None
        try:
            log = self._create_sync_log(options)
            return await self._run_cycle(options, log)

        except Exception as exc:
            logger.exception("Readwise sync failed")
            await self.notifier.notify(FAILED_MESSAGE)
            self._record_failure(log, exc)
            return STATUS_ERROR

        finally:
            self.timer.reschedule()

    async def run_scheduled_sync(self) -> None:
        """Timer callback: silent incremental sync."""
        await self.sync_highlights(SyncOptions())

    # ─── Cycle body ───────────────────────────────────────────────────────────

    async def _run_cycle(self, options: SyncOptions, log: SyncLog) -> str:
        api_key = self.settings.readwise_api_key
        if not api_key:
            logger.warning(NO_API_KEY_MESSAGE)
            await self.notifier.notify(NO_API_KEY_MESSAGE)
            self._finish_sync_log(log, status=STATUS_SKIPPED, error_message="no api key")
            return STATUS_SKIPPED

        since = None if options.ignore_last_sync else self.cursor.read()
        logger.info(
            "Fetching Readwise exports %s",
            f"updated since {since.isoformat()}" if since else "(full history)",
        )
        outcome = await fetch_outcome(self.client, api_key, since)

        if isinstance(outcome, ExportAuthFailure):
            logger.warning(INVALID_API_KEY_MESSAGE)
            await self.notifier.notify(INVALID_API_KEY_MESSAGE)
            self._finish_sync_log(
                log, status=STATUS_AUTH_ERROR, error_message="api key rejected"
            )
            return STATUS_AUTH_ERROR

        if isinstance(outcome, ExportFailure):
            logger.error("Readwise export failed: %s", outcome.message)
            await self.notifier.notify(f"Failed to sync Readwise highlights: {outcome.message}")
            self._finish_sync_log(log, status=STATUS_ERROR, error_message=outcome.message)
            return STATUS_ERROR

        result = ImportResult()
        if outcome.records:
            await self._say(IMPORTING_MESSAGE, options)
            result = await self.importer(self.engine, outcome.records)
            await self._say(FINISHED_MESSAGE, options)
        else:
            await self._say(NOTHING_NEW_MESSAGE, options)

        self._finish_sync_log(
            log,
            status=STATUS_SUCCESS,
            books_synced=result.books,
            highlights_synced=result.highlights,
        )
        # Last step, so a cycle reported as failed never leaves the cursor advanced
        self.cursor.write(self.clock())
        return STATUS_SUCCESS

    async def _say(self, message: str, options: SyncOptions) -> None:
        """Progress message: always logged, only surfaced when notify is set."""
        logger.info(message)
        if options.notify:
            await self.notifier.notify(message)

    # ─── Audit log ────────────────────────────────────────────────────────────

    def _create_sync_log(self, options: SyncOptions) -> SyncLog:
        log = SyncLog(
            started_at=self.clock(),
            status=STATUS_RUNNING,
            full_resync=options.ignore_last_sync,
        )
        with Session(self.engine) as s:
            s.add(log)
            s.commit()
            s.refresh(log)
        return log

    def _finish_sync_log(
        self,
        log: SyncLog,
        *,
        status: str,
        books_synced: int = 0,
        highlights_synced: int = 0,
        error_message: Optional[str] = None,
    ) -> None:
        with Session(self.engine) as s:
            db_log = s.get(SyncLog, log.id)
            db_log.status = status
            db_log.finished_at = self.clock()
            db_log.books_synced = books_synced
            db_log.highlights_synced = highlights_synced
            db_log.error_message = error_message
            s.add(db_log)
            s.commit()
        log.status = status

    def _record_failure(self, log: Optional[SyncLog], exc: Exception) -> None:
        if log is None:
            return
        try:
            self._finish_sync_log(log, status=STATUS_ERROR, error_message=str(exc))
        except Exception:
            logger.exception("Could not record failed sync in SyncLog")
