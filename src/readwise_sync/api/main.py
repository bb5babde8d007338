"""FastAPI application factory."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from readwise_sync.api.routes import books, sync as sync_routes
from readwise_sync.config import get_settings
from readwise_sync.db.engine import get_engine

logger = logging.getLogger(__name__)


def create_app(sync_service=None) -> FastAPI:
    """
    Build and return the FastAPI app.

    Args:
        sync_service: ReadwiseSyncService to use. If omitted, one is built in
            the lifespan; its timer only runs here when API_RUN_SCHEDULER is
            set, otherwise the `python -m readwise_sync` process owns it.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if app.state.sync_service is None:
            from readwise_sync.scheduler.jobs import build_sync_service, start_sync_schedule

            service, timer = build_sync_service(get_engine())
            app.state.sync_service = service
            if get_settings().api_run_scheduler:
                scheduler = timer.scheduler
                scheduler.start()
                start_sync_schedule(service, timer)
                logger.info("Readwise sync scheduler running in API process")
        yield
        if scheduler is not None:
            scheduler.shutdown()

    app = FastAPI(
        title="Readwise Sync API",
        description="Incremental Readwise highlight sync",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.sync_service = sync_service

    app.include_router(sync_routes.router, prefix="/sync", tags=["sync"])
    app.include_router(books.router, prefix="/books", tags=["books"])

    return app


# Module-level app instance for uvicorn
app = create_app()
