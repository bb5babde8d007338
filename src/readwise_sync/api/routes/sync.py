"""Sync trigger and status routes."""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlmodel import Session, select

from readwise_sync.db.engine import get_session
from readwise_sync.models.sync import SyncLog
from readwise_sync.sync.service import SyncOptions

router = APIRouter()


class SyncStatusResponse(BaseModel):
    status: str
    started_at: Optional[datetime]
    finished_at: Optional[datetime]
    books_synced: Optional[int]
    highlights_synced: Optional[int]
    error_message: Optional[str]
    last_sync: Optional[datetime]
    next_run: Optional[datetime]


def get_sync_service(request: Request):
    """FastAPI dependency returning the app's ReadwiseSyncService."""
    service = request.app.state.sync_service
    if service is None:
        raise HTTPException(status_code=503, detail="Sync service not ready")
    return service


@router.post("/latest")
async def sync_latest(
    background_tasks: BackgroundTasks,
    service=Depends(get_sync_service),
):
    """
    Sync books and highlights changed since the last sync.
    Returns immediately; sync runs in background.
    """
    background_tasks.add_task(service.sync_highlights, SyncOptions(notify=True))
    return {"message": "Sync started", "full_resync": False}


@router.post("/all")
async def sync_all(
    background_tasks: BackgroundTasks,
    service=Depends(get_sync_service),
):
    """Re-import every book and highlight, ignoring the last sync time."""
    background_tasks.add_task(
        service.sync_highlights, SyncOptions(ignore_last_sync=True, notify=True)
    )
    return {"message": "Sync started", "full_resync": True}


@router.get("/status", response_model=SyncStatusResponse)
def sync_status(
    session: Session = Depends(get_session),
    service=Depends(get_sync_service),
):
    """Return the most recent sync cycle, the cursor, and the next scheduled run."""
    log = session.exec(
        select(SyncLog).order_by(SyncLog.started_at.desc())
    ).first()
    last_sync = service.cursor.read()
    next_run = service.timer.next_run_time()
    if not log:
        return SyncStatusResponse(
            status="never_run",
            started_at=None,
            finished_at=None,
            books_synced=None,
            highlights_synced=None,
            error_message=None,
            last_sync=last_sync,
            next_run=next_run,
        )
    return SyncStatusResponse(
        status=log.status,
        started_at=log.started_at,
        finished_at=log.finished_at,
        books_synced=log.books_synced,
        highlights_synced=log.highlights_synced,
        error_message=log.error_message,
        last_sync=last_sync,
        next_run=next_run,
    )
