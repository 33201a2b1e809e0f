"""Deduplication of fetched quests against the seen-set."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from qwesty.ingestion.quest import QuestRecord
from qwesty.storage.seen import SeenStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedupResult:
    """Outcome of one ``Deduplicator.process`` call."""

    accepted: list[QuestRecord] = field(default_factory=list)
    rejected_count: int = 0
    filtered_count: int = 0


def matches_filter(record: QuestRecord, reward_filter: str) -> bool:
    """Return True if the record passes the configured reward filter."""
    if reward_filter == "all":
        return True
    return record.reward_category == reward_filter


class Deduplicator:
    """Partition batches into new and already-known quests.

    The check-then-set over a batch runs while holding the store's lock, so
    the scheduler thread and ingest request threads never both accept the
    same (region, id) key.
    """

    def __init__(self, store: SeenStore, reward_filter: str = "all") -> None:
        self._store = store
        self._reward_filter = reward_filter

    @property
    def store(self) -> SeenStore:
        return self._store

    def process(self, region: str, records: list[QuestRecord]) -> DedupResult:
        candidates = [r for r in records if matches_filter(r, self._reward_filter)]
        filtered = len(records) - len(candidates)

        accepted: list[QuestRecord] = []
        rejected = 0
        now = datetime.now(timezone.utc).isoformat()

        with self._store.lock:
            for record in candidates:
                if self._store.contains(region, record.id):
                    rejected += 1
                    continue
                self._store.mark_seen(region, record.id, now)
                accepted.append(record)

        logger.info(
            "Dedup %s: %d accepted, %d duplicates, %d filtered (filter=%s)",
            region, len(accepted), rejected, filtered, self._reward_filter,
        )
        return DedupResult(accepted=accepted, rejected_count=rejected, filtered_count=filtered)
