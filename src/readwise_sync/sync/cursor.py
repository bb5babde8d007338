"""
Sync cursor: the persisted "caught up as of" timestamp.

Stored as an ISO-8601 string in the SyncedValue table so every process
(and every machine) pointed at the same database shares it. Absent or
malformed values read as None, which means "sync everything".
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Session

from readwise_sync.models.sync import SyncedValue

logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "readwise_last_sync"


class SyncedStorage:
    """String key/value storage backed by the SyncedValue table."""

    def __init__(self, engine):
        self.engine = engine

    def get_synced(self, key: str) -> Optional[str]:
        with Session(self.engine) as s:
            row = s.get(SyncedValue, key)
            return row.value if row else None

    def set_synced(self, key: str, value: str) -> None:
        with Session(self.engine) as s:
            row = s.get(SyncedValue, key)
            if row is None:
                row = SyncedValue(key=key)
            row.value = value
            row.updated_at = datetime.now(timezone.utc)
            s.add(row)
            s.commit()


class SyncCursor:
    """Reads and writes the last successful sync time."""

    def __init__(self, storage: SyncedStorage, key: str = LAST_SYNC_KEY):
        self.storage = storage
        self.key = key

    def read(self) -> Optional[datetime]:
        raw = self.storage.get_synced(self.key)
        if not raw:
            return None
        try:
            value = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Ignoring malformed sync cursor %r", raw)
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    def write(self, when: datetime) -> None:
        if when.tzinfo is None:
            when = when.replace(tzinfo=timezone.utc)
        self.storage.set_synced(self.key, when.astimezone(timezone.utc).isoformat())
