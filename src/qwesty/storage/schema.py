"""Seen-set schema definition and initialization."""

from __future__ import annotations

import logging

from qwesty.storage.connection import get_connection

logger = logging.getLogger(__name__)

_SCHEMA_SQL = """\
-- Composite (region, quest_id) keys accepted by the deduplicator
CREATE TABLE IF NOT EXISTS seen_quests (
    region      TEXT NOT NULL,
    quest_id    TEXT NOT NULL,
    first_seen  TEXT NOT NULL,
    PRIMARY KEY (region, quest_id)
);

CREATE INDEX IF NOT EXISTS idx_seen_quests_first_seen ON seen_quests(first_seen);
"""


def init_db(database_path: str) -> None:
    """Create the seen_quests table and index if they do not already exist."""
    with get_connection(database_path) as conn:
        conn.executescript(_SCHEMA_SQL)
    logger.info("Database initialized at %s", database_path)
