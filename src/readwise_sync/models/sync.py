"""Sync bookkeeping models: synced key/value storage and the audit log."""
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel

STATUS_RUNNING = "running"
STATUS_SUCCESS = "success"
STATUS_SKIPPED = "skipped"  # no API key configured
STATUS_AUTH_ERROR = "auth_error"
STATUS_ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncedValue(SQLModel, table=True):
    """Small string values shared by every process pointed at the same database."""

    key: str = Field(primary_key=True)
    value: Optional[str] = None
    updated_at: datetime = Field(default_factory=_utcnow)


class SyncLog(SQLModel, table=True):
    """Records each sync cycle for audit and debugging."""

    id: Optional[int] = Field(default=None, primary_key=True)
    started_at: datetime = Field(default_factory=_utcnow)
    finished_at: Optional[datetime] = None
    status: str = STATUS_RUNNING
    full_resync: bool = False
    books_synced: int = 0
    highlights_synced: int = 0
    error_message: Optional[str] = None
