"""Integration tests for /sync and /books routes."""
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session

from readwise_sync.api.main import create_app
from readwise_sync.config import Settings
from readwise_sync.db.engine import get_session
from readwise_sync.models.highlight import Book, Highlight
from readwise_sync.models.sync import SyncLog
from readwise_sync.scheduler.jobs import build_sync_service
from readwise_sync.sync.service import SyncOptions

LAST_SYNC = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(name="sync_service")
def sync_service_fixture():
    service = MagicMock()
    service.sync_highlights = AsyncMock(return_value="success")
    service.cursor.read.return_value = LAST_SYNC
    service.timer.next_run_time.return_value = LAST_SYNC + timedelta(minutes=30)
    return service


@pytest.fixture(name="client")
def client_fixture(engine, sync_service):
    app = create_app(sync_service=sync_service)

    def override_session():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = override_session
    with TestClient(app) as c:
        yield c


class TestSyncRoutes:
    def test_sync_latest_runs_incremental_sync(self, client, sync_service):
        resp = client.post("/sync/latest")
        assert resp.status_code == 200
        assert "started" in resp.json()["message"].lower()
        assert resp.json()["full_resync"] is False
        sync_service.sync_highlights.assert_called_once_with(SyncOptions(notify=True))

    def test_sync_all_ignores_last_sync(self, client, sync_service):
        resp = client.post("/sync/all")
        assert resp.status_code == 200
        assert resp.json()["full_resync"] is True
        sync_service.sync_highlights.assert_called_once_with(
            SyncOptions(ignore_last_sync=True, notify=True)
        )

    def test_status_never_run(self, client):
        resp = client.get("/sync/status")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "never_run"
        assert body["last_sync"].startswith("2025-01-15T12:00:00")
        assert body["next_run"].startswith("2025-01-15T12:30:00")

    def test_status_after_log_created(self, client, engine):
        with Session(engine) as s:
            s.add(SyncLog(
                started_at=datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc),
                finished_at=datetime(2025, 1, 15, 12, 1, tzinfo=timezone.utc),
                status="success",
                books_synced=2,
                highlights_synced=7,
            ))
            s.commit()

        body = client.get("/sync/status").json()
        assert body["status"] == "success"
        assert body["books_synced"] == 2
        assert body["highlights_synced"] == 7

    def test_status_shows_latest_error(self, client, engine):
        with Session(engine) as s:
            s.add(SyncLog(started_at=datetime(2025, 1, 15, 11, 0, tzinfo=timezone.utc), status="success"))
            s.add(SyncLog(
                started_at=datetime(2025, 1, 15, 11, 30, tzinfo=timezone.utc),
                status="auth_error",
                error_message="api key rejected",
            ))
            s.commit()

        body = client.get("/sync/status").json()
        assert body["status"] == "auth_error"
        assert body["error_message"] == "api key rejected"


class TestStatusWithoutScheduler:
    """Default API mode: the timer's scheduler is never started in this process."""

    @pytest.fixture(name="real_client")
    def real_client_fixture(self, engine, clock):
        settings = Settings(readwise_api_key="test-key", _env_file=None)
        readwise = AsyncMock()
        readwise.fetch_exports = AsyncMock(return_value=[])
        service, timer = build_sync_service(
            engine, client=readwise, settings=settings, clock=clock
        )
        app = create_app(sync_service=service)

        def override_session():
            with Session(engine) as s:
                yield s

        app.dependency_overrides[get_session] = override_session
        with TestClient(app) as c:
            yield c, timer

    def test_next_run_is_null_after_manual_sync(self, real_client):
        client, timer = real_client
        assert client.post("/sync/latest").status_code == 200
        # The cycle still parks a job on the stopped scheduler
        assert timer.pending_run_time() is not None

        body = client.get("/sync/status").json()
        assert body["status"] == "success"
        assert body["last_sync"].startswith("2025-01-15T12:00:00")
        assert body["next_run"] is None


class TestBookRoutes:
    def _seed(self, engine) -> int:
        with Session(engine) as s:
            book = Book(readwise_book_id="1", title="Meditations", author="Marcus Aurelius")
            s.add(book)
            s.commit()
            s.refresh(book)
            s.add(Highlight(readwise_highlight_id="h2", book_id=book.id, text="second", location=20))
            s.add(Highlight(readwise_highlight_id="h1", book_id=book.id, text="first", location=10))
            s.commit()
            return book.id

    def test_list_books(self, client, engine):
        self._seed(engine)
        resp = client.get("/books/")
        assert resp.status_code == 200
        assert [b["title"] for b in resp.json()] == ["Meditations"]

    def test_highlights_in_location_order(self, client, engine):
        book_id = self._seed(engine)
        resp = client.get(f"/books/{book_id}/highlights")
        assert resp.status_code == 200
        assert [h["text"] for h in resp.json()] == ["first", "second"]

    def test_highlights_unknown_book(self, client):
        resp = client.get("/books/999/highlights")
        assert resp.status_code == 404
