"""Tests for SyncedStorage and SyncCursor."""
from datetime import datetime, timedelta, timezone

import pytest

from readwise_sync.sync.cursor import LAST_SYNC_KEY, SyncCursor, SyncedStorage

T0 = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def storage(engine):
    return SyncedStorage(engine)


@pytest.fixture
def cursor(storage):
    return SyncCursor(storage)


class TestSyncedStorage:
    def test_missing_key(self, storage):
        assert storage.get_synced("nope") is None

    def test_set_then_get(self, storage):
        storage.set_synced("k", "v")
        assert storage.get_synced("k") == "v"

    def test_overwrite(self, storage):
        storage.set_synced("k", "v1")
        storage.set_synced("k", "v2")
        assert storage.get_synced("k") == "v2"

    def test_shared_across_instances(self, engine):
        SyncedStorage(engine).set_synced("k", "v")
        assert SyncedStorage(engine).get_synced("k") == "v"


class TestSyncCursor:
    def test_absent_on_first_run(self, cursor):
        assert cursor.read() is None

    def test_write_then_read(self, cursor):
        cursor.write(T0)
        assert cursor.read() == T0

    def test_stored_as_iso_string(self, cursor, storage):
        cursor.write(T0)
        assert storage.get_synced(LAST_SYNC_KEY) == "2025-01-15T12:00:00+00:00"

    def test_non_utc_input_normalized(self, cursor, storage):
        cursor.write(T0.astimezone(timezone(timedelta(hours=5))))
        assert storage.get_synced(LAST_SYNC_KEY) == "2025-01-15T12:00:00+00:00"
        assert cursor.read() == T0

    def test_malformed_value_reads_as_absent(self, cursor, storage):
        storage.set_synced(LAST_SYNC_KEY, "not a date")
        assert cursor.read() is None

    def test_empty_value_reads_as_absent(self, cursor, storage):
        storage.set_synced(LAST_SYNC_KEY, "")
        assert cursor.read() is None

    def test_z_suffix_accepted(self, cursor, storage):
        storage.set_synced(LAST_SYNC_KEY, "2025-01-15T12:00:00.000Z")
        assert cursor.read() == T0

    def test_naive_value_taken_as_utc(self, cursor, storage):
        storage.set_synced(LAST_SYNC_KEY, "2025-01-15T12:00:00")
        assert cursor.read() == T0
