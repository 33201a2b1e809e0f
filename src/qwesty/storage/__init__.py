"""Storage layer — the seen-set of accepted (region, quest id) keys."""

from qwesty.storage.seen import (
    JsonSeenStore,
    MemorySeenStore,
    SeenStore,
    SqliteSeenStore,
    open_store,
)

__all__ = [
    "JsonSeenStore",
    "MemorySeenStore",
    "SeenStore",
    "SqliteSeenStore",
    "open_store",
]
