"""Webhook delivery — one POST per (quest, sink), failures isolated."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

import httpx

from qwesty.config import Sink
from qwesty.errors import DeliveryError
from qwesty.ingestion.quest import QuestRecord
from qwesty.notify.renderer import render_quest_embed

logger = logging.getLogger(__name__)

_SEND_PAUSE = 0.25  # seconds after each delivery, keeps under webhook rate limits


@dataclass
class DeliveryReport:
    """Result of fanning a batch of quests out to every sink."""

    delivered: int = 0
    failures: list[DeliveryError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def error(self) -> DeliveryError | None:
        """One aggregate error describing every failed delivery, or None."""
        if not self.failures:
            return None
        details = "; ".join(str(f) for f in self.failures)
        return DeliveryError(f"{len(self.failures)} delivery failure(s): {details}")


class WebhookNotifier:
    """Send quest notifications to a fixed set of sinks."""

    def __init__(self, sinks: list[Sink] | tuple[Sink, ...], *, timeout: float = 30.0) -> None:
        self._sinks = tuple(sinks)
        self._timeout = timeout

    @property
    def sinks(self) -> tuple[Sink, ...]:
        return self._sinks

    def notify(self, sink: Sink, record: QuestRecord) -> None:
        """Deliver one quest to one sink. Raises DeliveryError; never retries."""
        payload = render_quest_embed(record, username=sink.name)
        try:
            resp = httpx.post(sink.url, json=payload, timeout=self._timeout)
        except httpx.HTTPError as exc:
            raise DeliveryError(
                f"webhook {sink.label} unreachable for quest {record.id}: {exc}",
                sink=sink, record=record,
            ) from exc

        if not 200 <= resp.status_code < 300:
            raise DeliveryError(
                f"webhook {sink.label} returned HTTP {resp.status_code} for quest {record.id}",
                sink=sink, record=record,
            )
        logger.info("Sent notification for quest %s (%s) to %s", record.id, record.name, sink.label)

    def notify_all(self, records: list[QuestRecord]) -> DeliveryReport:
        """Deliver every record to every sink, in record order.

        A failing (record, sink) pair is logged and collected; the rest of
        the batch still goes out.
        """
        report = DeliveryReport()
        for record in records:
            for sink in self._sinks:
                try:
                    self.notify(sink, record)
                except DeliveryError as exc:
                    logger.warning("Delivery failed: %s", exc)
                    report.failures.append(exc)
                    continue
                report.delivered += 1
                time.sleep(_SEND_PAUSE)

        if records:
            logger.info(
                "Notifications: %d delivered, %d failed (%d quests x %d sinks)",
                report.delivered, len(report.failures), len(records), len(self._sinks),
            )
        return report
