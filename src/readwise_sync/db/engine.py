"""SQLModel engine singleton and session dependency."""
from typing import Generator

from sqlmodel import Session, SQLModel, create_engine

from readwise_sync.config import get_settings

_engine = None


def get_engine():
    """Return the module-level engine, creating it (and all tables) on first call."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_engine(
            settings.database_url,
            connect_args={"check_same_thread": False},  # SQLite only; safe for FastAPI
        )
        # Registers the book/highlight schema and the sync bookkeeping tables
        from readwise_sync.models.highlight import Book, Highlight  # noqa
        from readwise_sync.models.sync import SyncedValue, SyncLog  # noqa
        SQLModel.metadata.create_all(_engine)
    return _engine


def get_session() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a DB session."""
    with Session(get_engine()) as session:
        yield session
