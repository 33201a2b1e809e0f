"""Tests for qwesty.storage — seen-set backends."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from qwesty.errors import StorageError
from qwesty.storage import JsonSeenStore, MemorySeenStore, SqliteSeenStore, open_store
from qwesty.storage.connection import get_connection


@pytest.fixture(params=["memory", "json", "sqlite"])
def store(request, tmp_path):
    suffix = "db" if request.param == "sqlite" else "json"
    return open_store(request.param, str(tmp_path / f"seen.{suffix}"))


# --- Contract shared by every backend ---


class TestSeenStoreContract:
    def test_starts_empty(self, store):
        assert len(store) == 0
        assert not store.contains("en-US", "q1")

    def test_mark_seen_then_contains(self, store):
        store.mark_seen("en-US", "q1", "2025-06-15T00:00:00+00:00")
        assert store.contains("en-US", "q1")
        assert len(store) == 1

    def test_key_is_region_scoped(self, store):
        store.mark_seen("en-US", "q1")
        assert not store.contains("ko-KR", "q1")

    def test_reinsert_is_noop(self, store):
        store.mark_seen("en-US", "q1", "2025-06-15T00:00:00+00:00")
        store.mark_seen("en-US", "q1", "2025-06-16T00:00:00+00:00")
        assert len(store) == 1

    def test_lock_is_reentrant(self, store):
        with store.lock:
            with store.lock:
                store.mark_seen("en-US", "q1")
        assert store.contains("en-US", "q1")


# --- JSON file backend ---


class TestJsonSeenStore:
    def test_missing_file_is_empty(self, tmp_path):
        store = JsonSeenStore(str(tmp_path / "absent.json"))
        assert len(store) == 0

    def test_empty_file_is_empty(self, tmp_path):
        path = tmp_path / "seen.json"
        path.write_text("")
        assert len(JsonSeenStore(str(path))) == 0

    def test_creates_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "seen.json"
        store = JsonSeenStore(str(path))
        store.mark_seen("en-US", "q1")
        assert path.exists()

    def test_survives_reload(self, tmp_path):
        path = str(tmp_path / "seen.json")
        store = JsonSeenStore(path)
        store.mark_seen("en-US", "q1", "2025-06-15T00:00:00+00:00")
        store.mark_seen("ko-KR", "q1", "2025-06-15T00:00:00+00:00")

        reloaded = JsonSeenStore(path)
        assert len(reloaded) == 2
        assert reloaded.contains("en-US", "q1")
        assert reloaded.contains("ko-KR", "q1")

    def test_file_shape(self, tmp_path):
        path = tmp_path / "seen.json"
        JsonSeenStore(str(path)).mark_seen("en-US", "q1", "2025-06-15T00:00:00+00:00")

        data = json.loads(path.read_text())
        assert data == {
            "version": 1,
            "seen": [{"region": "en-US", "id": "q1", "first_seen": "2025-06-15T00:00:00+00:00"}],
        }

    def test_flushes_on_every_mark(self, tmp_path):
        path = tmp_path / "seen.json"
        store = JsonSeenStore(str(path))
        store.mark_seen("en-US", "q1")
        assert len(json.loads(path.read_text())["seen"]) == 1
        store.mark_seen("en-US", "q2")
        assert len(json.loads(path.read_text())["seen"]) == 2

    def test_corrupt_json_is_fatal(self, tmp_path):
        path = tmp_path / "seen.json"
        path.write_text("{not json")
        with pytest.raises(StorageError, match="corrupt"):
            JsonSeenStore(str(path))

    def test_wrong_shape_is_fatal(self, tmp_path):
        path = tmp_path / "seen.json"
        path.write_text(json.dumps(["en-US:q1"]))
        with pytest.raises(StorageError, match="unexpected shape"):
            JsonSeenStore(str(path))

    def test_malformed_entry_is_fatal(self, tmp_path):
        path = tmp_path / "seen.json"
        path.write_text(json.dumps({"version": 1, "seen": [{"region": "en-US"}]}))
        with pytest.raises(StorageError, match="malformed entry"):
            JsonSeenStore(str(path))

    def test_write_failure_raises_and_rolls_back(self, tmp_path):
        store = JsonSeenStore(str(tmp_path / "seen.json"))
        with patch("qwesty.storage.seen.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(StorageError, match="disk full"):
                store.mark_seen("en-US", "q1")
        assert not store.contains("en-US", "q1")
        assert list(tmp_path.glob(".seen-*")) == []


# --- SQLite backend ---


class TestSqliteSeenStore:
    def test_survives_reload(self, tmp_path):
        path = str(tmp_path / "seen.db")
        SqliteSeenStore(path).mark_seen("en-US", "q1")
        assert SqliteSeenStore(path).contains("en-US", "q1")

    def test_first_seen_is_kept(self, tmp_path):
        path = str(tmp_path / "seen.db")
        store = SqliteSeenStore(path)
        store.mark_seen("en-US", "q1", "2025-06-15T00:00:00+00:00")
        store.mark_seen("en-US", "q1", "2025-06-20T00:00:00+00:00")
        with get_connection(path) as conn:
            row = conn.execute("SELECT first_seen FROM seen_quests").fetchone()
        assert row["first_seen"] == "2025-06-15T00:00:00+00:00"

    def test_corrupt_database_is_fatal(self, tmp_path):
        path = tmp_path / "seen.db"
        path.write_bytes(b"this is definitely not a sqlite database file" * 20)
        with pytest.raises(StorageError, match="unusable"):
            SqliteSeenStore(str(path))


def test_open_store_memory_ignores_path(tmp_path):
    store = open_store("memory", str(tmp_path / "unused.json"))
    assert isinstance(store, MemorySeenStore)
    assert not (tmp_path / "unused.json").exists()


@pytest.mark.parametrize("storage_type", ["memory", "json", "sqlite"])
def test_open_store_reports_backend(tmp_path, storage_type):
    store = open_store(storage_type, str(tmp_path / "seen.store"))
    assert store.backend == storage_type


def test_open_store_unknown_type():
    with pytest.raises(ValueError, match="Unknown storage type"):
        open_store("redis", "/tmp/x")
