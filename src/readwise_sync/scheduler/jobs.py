"""
APScheduler timer for the recurring Readwise sync.

There is exactly one job, id "readwise_sync". It is a one-shot date job:
every cycle ends by calling SyncTimer.reschedule(), which removes whatever
is pending and schedules the next run one interval out. A cycle that runs
manually (bot command, HTTP) therefore pushes the automatic one back rather
than adding a second one.

At startup the first run is placed relative to the persisted cursor, so
cycles stay roughly interval-spaced across restarts.

The scheduler runs inside the same process as the bot (wired in __main__).
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, Tuple

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from readwise_sync.config import Settings, get_settings
from readwise_sync.sync.clock import utcnow

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "readwise_sync"


def build_scheduler() -> AsyncIOScheduler:
    """Create the APScheduler (not yet started)."""
    return AsyncIOScheduler(timezone=timezone.utc)


class SyncTimer:
    """
    Owns the single pending sync job.

    reschedule() is the only way to arm it, and it always cancels the
    pending job first, so at most one job exists at any time.
    """

    def __init__(
        self,
        scheduler: AsyncIOScheduler,
        interval: timedelta,
        job_func: Optional[Callable[[], Awaitable[None]]] = None,
        clock=utcnow,
    ):
        """
        Args:
            scheduler: AsyncIOScheduler that runs the job.
            interval: Default delay between cycles.
            job_func: Coroutine function run when the timer fires.
            clock: Callable returning the current aware UTC datetime.
        """
        self.scheduler = scheduler
        self.interval = interval
        self.job_func = job_func
        self.clock = clock
        self._job = None

    def reschedule(self, delay: Optional[timedelta] = None) -> datetime:
        """
        Cancel any pending run and schedule the next one.

        Args:
            delay: Time until the next run. Defaults to the interval.

        Returns:
            The time the next run is scheduled for.
        """
        if self.job_func is None:
            raise RuntimeError("SyncTimer has no job_func to schedule")

        self.cancel()
        run_at = self.clock() + (self.interval if delay is None else delay)
        self._job = self.scheduler.add_job(
            self.job_func,
            trigger="date",
            run_date=run_at,
            id=SYNC_JOB_ID,
            replace_existing=True,
            misfire_grace_time=None,  # a late run still runs (e.g. armed before start())
        )
        logger.info("Next Readwise sync scheduled for %s", run_at.isoformat())
        return run_at

    def cancel(self) -> None:
        """Remove the pending run, if any. Safe to call when nothing is pending."""
        if self._job is None:
            return
        try:
            self.scheduler.remove_job(self._job.id)
        except JobLookupError:
            pass  # already fired; date jobs are dropped once dispatched
        self._job = None

    def pending_run_time(self) -> Optional[datetime]:
        """When the pending run will fire, or None if nothing is scheduled."""
        job = self.scheduler.get_job(SYNC_JOB_ID)
        if job is None:
            return None
        # Jobs added before scheduler.start() have no next_run_time yet
        return getattr(job, "next_run_time", None) or job.trigger.run_date

    def next_run_time(self) -> Optional[datetime]:
        """
        When the next cycle will actually run.

        None unless the scheduler is running: a job parked on a stopped
        scheduler (e.g. the API process without API_RUN_SCHEDULER) never fires.
        """
        if not self.scheduler.running:
            return None
        return self.pending_run_time()


def build_sync_service(
    engine,
    scheduler: Optional[AsyncIOScheduler] = None,
    notifier=None,
    client=None,
    settings: Optional[Settings] = None,
    clock=utcnow,
) -> Tuple["ReadwiseSyncService", SyncTimer]:
    """
    Wire a ReadwiseSyncService to its timer.

    Args:
        engine: SQLAlchemy engine.
        scheduler: AsyncIOScheduler; a new one is built if omitted.
        notifier: Notifier for user-visible messages (log-only if omitted).
        client: ReadwiseClient; built from settings if omitted.
        settings: Settings; defaults to get_settings().
        clock: Callable returning the current aware UTC datetime.

    Returns:
        (service, timer). The scheduler is not started.
    """
    from readwise_sync.readwise.client import ReadwiseClient
    from readwise_sync.sync.service import ReadwiseSyncService

    settings = settings or get_settings()
    scheduler = scheduler or build_scheduler()
    client = client or ReadwiseClient(
        base_url=settings.readwise_base_url,
        timeout=settings.readwise_timeout_seconds,
    )

    timer = SyncTimer(
        scheduler,
        interval=timedelta(minutes=settings.sync_interval_minutes),
        clock=clock,
    )
    service = ReadwiseSyncService(
        client=client,
        engine=engine,
        timer=timer,
        notifier=notifier,
        settings=settings,
        clock=clock,
    )
    timer.job_func = service.run_scheduled_sync
    return service, timer


def start_sync_schedule(service, timer: SyncTimer) -> datetime:
    """
    Arm the timer for the first cycle after startup.

    No cursor, or a cursor older than the interval: run right away.
    Otherwise wait out the rest of the interval measured from the cursor,
    e.g. a restart 10 minutes after a sync on a 30-minute interval runs the
    next cycle in 20 minutes.

    Args:
        service: ReadwiseSyncService whose cursor is consulted.
        timer: The service's SyncTimer.

    Returns:
        The time the first cycle is scheduled for.
    """
    last_sync = service.cursor.read()
    now = timer.clock()

    if last_sync is None or now - last_sync > timer.interval:
        logger.info("Readwise cursor is %s; syncing now", "absent" if last_sync is None else "stale")
        return timer.reschedule(timedelta(0))

    # A cursor in the future (clock skew between machines) waits one interval
    remaining = min(timer.interval, timer.interval - (now - last_sync))
    return timer.reschedule(remaining)
