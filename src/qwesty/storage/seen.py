"""Seen-set backends — the record of (region, quest id) keys already accepted."""

from __future__ import annotations

import json
import logging
import os
import sqlite3
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path

from qwesty.errors import StorageError
from qwesty.storage.connection import get_connection
from qwesty.storage.schema import init_db

logger = logging.getLogger(__name__)

_FORMAT_VERSION = 1


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ensure_parent_dir(path: str) -> None:
    parent = Path(path).parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageError(f"Cannot create storage directory {parent}: {exc}") from exc


class SeenStore(ABC):
    """Set of composite (region, quest id) keys with first-seen timestamps.

    ``contains`` and ``mark_seen`` each take ``lock``. Callers that need a
    check-then-set sequence to be atomic hold ``lock`` across both calls; it
    is re-entrant so the nested acquisition is safe.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()

    @property
    @abstractmethod
    def backend(self) -> str:
        """Short backend name for logging."""

    @abstractmethod
    def contains(self, region: str, quest_id: str) -> bool:
        """Return True if the key was accepted before."""

    @abstractmethod
    def mark_seen(self, region: str, quest_id: str, timestamp: str | None = None) -> None:
        """Record the key. A key that is already present is left untouched."""

    @abstractmethod
    def __len__(self) -> int:
        """Number of stored keys."""


class MemorySeenStore(SeenStore):
    """In-process store; forgets everything on restart."""

    def __init__(self) -> None:
        super().__init__()
        self._seen: dict[tuple[str, str], str] = {}

    @property
    def backend(self) -> str:
        return "memory"

    def contains(self, region: str, quest_id: str) -> bool:
        with self.lock:
            return (region, quest_id) in self._seen

    def mark_seen(self, region: str, quest_id: str, timestamp: str | None = None) -> None:
        with self.lock:
            self._seen.setdefault((region, quest_id), timestamp or _now())

    def __len__(self) -> int:
        with self.lock:
            return len(self._seen)


class JsonSeenStore(SeenStore):
    """File-backed store. Loads the whole set at startup and rewrites the file
    atomically on every new key.

    File shape::

        {"version": 1, "seen": [{"region": "en-US", "id": "123", "first_seen": "..."}]}

    A missing or empty file is an empty set. Anything unparseable raises
    StorageError rather than starting over, since forgetting history would
    re-notify every live quest.
    """

    def __init__(self, path: str) -> None:
        super().__init__()
        self._path = path
        _ensure_parent_dir(path)
        self._seen = self._load()
        logger.info("Loaded %d seen quest keys from %s", len(self._seen), path)

    @property
    def backend(self) -> str:
        return "json"

    def _load(self) -> dict[tuple[str, str], str]:
        path = Path(self._path)
        if not path.exists():
            return {}
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Cannot read seen-set file {path}: {exc}") from exc
        if not text.strip():
            return {}

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Seen-set file {path} is corrupt: {exc}") from exc

        if not isinstance(data, dict) or not isinstance(data.get("seen"), list):
            raise StorageError(f"Seen-set file {path} has an unexpected shape")

        seen: dict[tuple[str, str], str] = {}
        for entry in data["seen"]:
            if (
                not isinstance(entry, dict)
                or not isinstance(entry.get("region"), str)
                or not isinstance(entry.get("id"), str)
            ):
                raise StorageError(f"Seen-set file {path} has a malformed entry: {entry!r}")
            seen.setdefault((entry["region"], entry["id"]), entry.get("first_seen") or "")
        return seen

    def _flush(self) -> None:
        payload = {
            "version": _FORMAT_VERSION,
            "seen": [
                {"region": region, "id": quest_id, "first_seen": first_seen}
                for (region, quest_id), first_seen in self._seen.items()
            ],
        }
        directory = str(Path(self._path).parent)
        fd, tmp_path = tempfile.mkstemp(prefix=".seen-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._path)
        except OSError:
            try:
                os.unlink(tmp_path)
            except OSError:
                logger.warning("Could not remove temp file %s", tmp_path)
            raise

    def contains(self, region: str, quest_id: str) -> bool:
        with self.lock:
            return (region, quest_id) in self._seen

    def mark_seen(self, region: str, quest_id: str, timestamp: str | None = None) -> None:
        key = (region, quest_id)
        with self.lock:
            if key in self._seen:
                return
            self._seen[key] = timestamp or _now()
            try:
                self._flush()
            except OSError as exc:
                # Keep memory in line with disk; the caller treats this as fatal.
                del self._seen[key]
                raise StorageError(f"Cannot write seen-set file {self._path}: {exc}") from exc

    def __len__(self) -> int:
        with self.lock:
            return len(self._seen)


class SqliteSeenStore(SeenStore):
    """SQLite-backed store; each new key is committed on insert."""

    def __init__(self, database_path: str) -> None:
        super().__init__()
        self._database_path = database_path
        _ensure_parent_dir(database_path)
        try:
            init_db(database_path)
            count = len(self)
        except sqlite3.DatabaseError as exc:
            raise StorageError(f"Seen-set database {database_path} is unusable: {exc}") from exc
        logger.info("Opened %s with %d seen quest keys", database_path, count)

    @property
    def backend(self) -> str:
        return "sqlite"

    def contains(self, region: str, quest_id: str) -> bool:
        with self.lock:
            try:
                with get_connection(self._database_path) as conn:
                    row = conn.execute(
                        "SELECT 1 FROM seen_quests WHERE region = ? AND quest_id = ?",
                        (region, quest_id),
                    ).fetchone()
            except sqlite3.Error as exc:
                raise StorageError(f"Seen-set lookup failed: {exc}") from exc
        return row is not None

    def mark_seen(self, region: str, quest_id: str, timestamp: str | None = None) -> None:
        with self.lock:
            try:
                with get_connection(self._database_path) as conn:
                    conn.execute(
                        "INSERT OR IGNORE INTO seen_quests (region, quest_id, first_seen) "
                        "VALUES (?, ?, ?)",
                        (region, quest_id, timestamp or _now()),
                    )
            except sqlite3.Error as exc:
                raise StorageError(f"Seen-set insert failed: {exc}") from exc

    def __len__(self) -> int:
        with self.lock:
            with get_connection(self._database_path) as conn:
                return conn.execute("SELECT COUNT(*) FROM seen_quests").fetchone()[0]


def open_store(storage_type: str, storage_path: str) -> SeenStore:
    """Build the configured backend. Raises StorageError if it cannot be loaded."""
    if storage_type == "memory":
        store: SeenStore = MemorySeenStore()
    elif storage_type == "json":
        store = JsonSeenStore(storage_path)
    elif storage_type == "sqlite":
        store = SqliteSeenStore(storage_path)
    else:
        raise ValueError(f"Unknown storage type: {storage_type}")

    logger.info(
        "Storage initialized - backend: %s, path: %s, keys: %d",
        store.backend, storage_path, len(store),
    )
    return store
