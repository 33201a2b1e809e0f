"""Scheduled tick — fetch each region, then dedup+notify locally or forward to a collector."""

from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field
from typing import Protocol

from qwesty.errors import ForwardError, StorageError, UpstreamAuthError, UpstreamError
from qwesty.forward import Forwarder
from qwesty.ingestion.quest import QuestRecord
from qwesty.pipeline import QuestPipeline

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    def fetch(self, region: str) -> list[QuestRecord]: ...


@dataclass
class TickSummary:
    """Counts for one completed tick, including partial failures."""

    regions_fetched: int = 0
    fetched: int = 0
    accepted: list[QuestRecord] = field(default_factory=list)
    rejected: int = 0
    filtered: int = 0
    fetch_errors: int = 0
    delivered: int = 0
    delivery_failures: int = 0
    forwarded: int = 0
    forward_errors: int = 0
    seeded: bool = False

    def as_dict(self) -> dict:
        return {
            "regions_fetched": self.regions_fetched,
            "fetched": self.fetched,
            "accepted": len(self.accepted),
            "rejected": self.rejected,
            "filtered": self.filtered,
            "fetch_errors": self.fetch_errors,
            "delivered": self.delivered,
            "delivery_failures": self.delivery_failures,
            "forwarded": self.forwarded,
            "forward_errors": self.forward_errors,
            "seeded": self.seeded,
        }


class PipelineDriver:
    """Runs one tick at a time over a fixed, ordered list of regions.

    The terminal step is either a local ``QuestPipeline`` (standalone and
    collector roles) or a ``Forwarder`` (agent role), never both.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        regions: list[str],
        *,
        pipeline: QuestPipeline | None = None,
        forwarder: Forwarder | None = None,
        initial_send_all: bool = False,
        delay_range: tuple[float, float] = (60.0, 70.0),
    ) -> None:
        if (pipeline is None) == (forwarder is None):
            raise ValueError("PipelineDriver needs exactly one of pipeline or forwarder")
        if not regions:
            raise ValueError("PipelineDriver needs at least one region")
        self._fetcher = fetcher
        self._regions = list(regions)
        self._pipeline = pipeline
        self._forwarder = forwarder
        self._initial_send_all = initial_send_all
        self._delay_range = delay_range
        self._tick_lock = threading.Lock()
        self._stop = threading.Event()

    @property
    def regions(self) -> list[str]:
        return list(self._regions)

    def stop(self) -> None:
        """Ask an in-flight tick to finish its current region and return."""
        self._stop.set()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no tick is running. Returns False on timeout."""
        acquired = self._tick_lock.acquire(timeout=-1 if timeout is None else timeout)
        if acquired:
            self._tick_lock.release()
        return acquired

    def tick(self) -> TickSummary | None:
        """Run one tick. Returns None if the previous tick is still running.

        Raises UpstreamAuthError and StorageError; every other failure is
        counted in the summary.
        """
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Previous tick still running; skipping this one")
            return None
        try:
            return self._run_tick()
        finally:
            self._tick_lock.release()

    def _should_seed(self) -> bool:
        if self._pipeline is None or self._initial_send_all:
            return False
        return len(self._pipeline.store) == 0

    def _run_tick(self) -> TickSummary:
        summary = TickSummary(seeded=self._should_seed())
        if summary.seeded:
            logger.info("Seen-set is empty and INITIAL_SEND_ALL=false; seeding without notifying")

        for index, region in enumerate(self._regions):
            if self._stop.is_set():
                logger.info("Stop requested; ending tick before %s", region)
                break

            if index > 0:
                delay = random.uniform(*self._delay_range)
                logger.info("Waiting %.0f seconds before checking next locale (%s)", delay, region)
                if self._stop.wait(delay):
                    logger.info("Stop requested; ending tick before %s", region)
                    break

            try:
                records = self._fetcher.fetch(region)
            except UpstreamAuthError:
                raise
            except UpstreamError as exc:
                summary.fetch_errors += 1
                logger.warning("Fetch failed for %s: %s", region, exc)
                continue

            summary.regions_fetched += 1
            summary.fetched += len(records)

            if self._forwarder is not None:
                try:
                    self._forwarder.forward(region, records)
                    summary.forwarded += len(records)
                except ForwardError as exc:
                    summary.forward_errors += 1
                    logger.warning("Dropping batch for %s: %s", region, exc)
                continue

            result = self._pipeline.handle(region, records, notify=not summary.seeded)
            summary.accepted.extend(result.dedup.accepted)
            summary.rejected += result.dedup.rejected_count
            summary.filtered += result.dedup.filtered_count
            summary.delivered += result.delivery.delivered
            summary.delivery_failures += len(result.delivery.failures)

        logger.info("Tick complete: %s", summary.as_dict())
        return summary


def run_tick(driver: PipelineDriver, *, require_fetch: bool = False) -> bool:
    """Scheduler job body. Returns False if the process must stop.

    With ``require_fetch`` (single-shot runs) a tick in which every region's
    fetch failed also counts as a failure.
    """
    try:
        summary = driver.tick()
    except UpstreamAuthError:
        logger.critical("Upstream token rejected; stopping", exc_info=True)
        return False
    except StorageError:
        logger.critical("Seen-set storage failed; stopping", exc_info=True)
        return False
    except Exception:
        logger.exception("Tick failed; the next scheduled tick will retry")
        return not require_fetch
    if require_fetch and summary is not None and summary.regions_fetched == 0 and summary.fetch_errors:
        logger.error("No region could be fetched (%d fetch errors)", summary.fetch_errors)
        return False
    return True
