"""Dedup-then-notify, shared by the local driver and the ingest endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from qwesty.ingestion.dedup import DedupResult, Deduplicator
from qwesty.ingestion.quest import QuestRecord
from qwesty.notify.webhook import DeliveryReport, WebhookNotifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    dedup: DedupResult
    delivery: DeliveryReport


class QuestPipeline:
    """Run a fetched batch through the Deduplicator, then notify the accepted quests.

    Notification happens outside the store lock; only the check-then-set is
    serialized.
    """

    def __init__(self, deduplicator: Deduplicator, notifier: WebhookNotifier) -> None:
        self._deduplicator = deduplicator
        self._notifier = notifier

    @property
    def store(self):
        return self._deduplicator.store

    def handle(self, region: str, records: list[QuestRecord], *, notify: bool = True) -> PipelineResult:
        """Deduplicate ``records`` for ``region`` and notify what is new.

        With ``notify=False`` new quests are recorded as seen without being
        sent (first-run seeding). StorageError propagates to the caller.
        """
        dedup = self._deduplicator.process(region, records)
        if not notify:
            if dedup.accepted:
                logger.info(
                    "Seeded %d quests for %s without notifying", len(dedup.accepted), region
                )
            return PipelineResult(dedup=dedup, delivery=DeliveryReport())

        delivery = self._notifier.notify_all(dedup.accepted)
        return PipelineResult(dedup=dedup, delivery=delivery)
