"""Shared test fixtures."""
from datetime import datetime, timedelta, timezone
from typing import Generator, List

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from readwise_sync.models.highlight import Book, Highlight  # noqa: F401
from readwise_sync.models.sync import SyncedValue, SyncLog  # noqa: F401
from readwise_sync.sync.notifier import Notifier

T0 = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock: returns `now` until advanced."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingNotifier(Notifier):
    """Collects notifications instead of sending them."""

    def __init__(self):
        self.messages: List[str] = []

    async def send(self, message: str) -> None:
        self.messages.append(message)


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    """Provides a DB session connected to in-memory SQLite."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="clock")
def clock_fixture() -> FakeClock:
    return FakeClock()


@pytest.fixture(name="notifier")
def notifier_fixture() -> RecordingNotifier:
    return RecordingNotifier()


def make_export_book(book_id: int = 1, highlight_ids=(101,), **overrides) -> dict:
    """Build a minimal Readwise export book with nested highlights."""
    book = {
        "user_book_id": book_id,
        "title": f"Book {book_id}",
        "readable_title": f"Book {book_id}",
        "author": "Jane Author",
        "category": "books",
        "source": "kindle",
        "cover_image_url": "https://example.com/cover.jpg",
        "readwise_url": f"https://readwise.io/bookreview/{book_id}",
        "source_url": None,
        "book_tags": [{"id": 1, "name": "philosophy"}],
        "document_note": None,
        "highlights": [
            {
                "id": hid,
                "text": f"Highlight {hid}",
                "note": "",
                "location": hid,
                "location_type": "page",
                "color": "yellow",
                "highlighted_at": "2025-01-10T08:00:00Z",
                "updated_at": "2025-01-11T08:00:00Z",
                "tags": [],
                "is_deleted": False,
                "readwise_url": f"https://readwise.io/open/{hid}",
            }
            for hid in highlight_ids
        ],
    }
    book.update(overrides)
    return book
