"""Wall clock used by the sync cycle and timer; tests swap in a fake."""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
