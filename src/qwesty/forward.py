"""Agent-side forwarding of fetched quests to the collector's ingest endpoint."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from qwesty.errors import ForwardError
from qwesty.ingestion.quest import QuestRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForwardResult:
    """Counts reported back by the collector."""

    accepted: int
    deduped: int


class Forwarder:
    """POST raw fetched batches to ``collector_url`` with a bearer token.

    Keeps no queue: a failed batch is dropped and the next tick re-sends,
    which the collector's dedup makes safe.
    """

    def __init__(
        self,
        collector_url: str,
        token: str,
        *,
        source_label: str = "agent",
        timeout: float = 30.0,
    ) -> None:
        self._collector_url = collector_url
        self._token = token
        self._source_label = source_label
        self._timeout = timeout

    def forward(self, region: str, records: list[QuestRecord]) -> ForwardResult:
        """Send one batch. Raises ForwardError on transport failure or non-2xx."""
        payload = {
            "region": region,
            "quests": [r.to_wire() for r in records],
            "source": self._source_label,
        }
        try:
            resp = httpx.post(
                self._collector_url,
                json=payload,
                headers={"Authorization": f"Bearer {self._token}"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise ForwardError(f"Failed to POST to collector: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            raise ForwardError(f"Collector responded with HTTP {resp.status_code}")

        try:
            data = resp.json()
            result = ForwardResult(accepted=int(data["accepted"]), deduped=int(data["deduped"]))
        except (ValueError, KeyError, TypeError):
            logger.warning("Collector acknowledged %s with an unreadable body", region)
            result = ForwardResult(accepted=0, deduped=0)

        logger.info(
            "Forwarded %d quests for %s to collector (accepted=%d, deduped=%d)",
            len(records), region, result.accepted, result.deduped,
        )
        return result
