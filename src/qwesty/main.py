"""Application entry point — runs the polling scheduler, plus the ingest server for collectors."""

from __future__ import annotations

import json
import logging
import sys
import threading
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from qwesty.config import Config, load_config
from qwesty.errors import StorageError
from qwesty.forward import Forwarder
from qwesty.ingestion.client import QuestClient
from qwesty.ingestion.dedup import Deduplicator
from qwesty.jobs import PipelineDriver, run_tick
from qwesty.notify.webhook import WebhookNotifier
from qwesty.pipeline import QuestPipeline
from qwesty.storage import open_store
from qwesty.web.app import create_app

logger = logging.getLogger("qwesty")


def _setup_logging(log_level: str, log_format: str) -> None:
    """Configure root logger based on config."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps(
                {
                    "time": "%(asctime)s",
                    "level": "%(levelname)s",
                    "logger": "%(name)s",
                    "message": "%(message)s",
                }
            )
        )
    else:
        formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    # httpx logs every request URL at INFO, which includes webhook tokens
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_driver(config: Config) -> tuple[PipelineDriver, QuestPipeline | None]:
    """Wire fetcher, store, dedup, notifier, and forwarder for the configured role.

    Raises StorageError if the seen-set cannot be loaded.
    """
    client = QuestClient(
        config.quest_api_token,
        base_url=config.quest_api_base_url,
        super_properties=config.super_properties,
        timeout=config.http_timeout_seconds,
    )
    delay_range = (config.locale_delay_min_seconds, config.locale_delay_max_seconds)

    if config.is_agent:
        forwarder = Forwarder(
            config.collector_url,
            config.collector_token,
            source_label=config.source_label,
            timeout=config.http_timeout_seconds,
        )
        driver = PipelineDriver(
            client, config.regions(), forwarder=forwarder, delay_range=delay_range,
        )
        return driver, None

    store = open_store(config.storage_type, config.storage_path)
    notifier = WebhookNotifier(config.sinks, timeout=config.http_timeout_seconds)
    pipeline = QuestPipeline(Deduplicator(store, config.reward_filter), notifier)
    driver = PipelineDriver(
        client,
        config.regions(),
        pipeline=pipeline,
        initial_send_all=config.initial_send_all,
        delay_range=delay_range,
    )
    return driver, pipeline


def _add_pipeline_job(scheduler, config: Config, job) -> None:
    scheduler.add_job(
        job,
        trigger=IntervalTrigger(minutes=config.fetch_interval_minutes),
        id="pipeline",
        name="Quest fetch + notify",
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(timezone.utc),
    )


def _run_polling(config: Config, driver: PipelineDriver) -> int:
    """Standalone and agent roles: block on the scheduler until stopped."""
    scheduler = BlockingScheduler()
    fatal = threading.Event()

    def _job() -> None:
        if not run_tick(driver):
            fatal.set()
            driver.stop()
            scheduler.shutdown(wait=False)

    _add_pipeline_job(scheduler, config, _job)
    logger.info("Scheduler starting (interval=%d min)", config.fetch_interval_minutes)
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutdown requested")
        driver.stop()
        scheduler.shutdown(wait=False)

    driver.wait_idle()
    return 1 if fatal.is_set() else 0


def _serve_collector(config: Config, driver: PipelineDriver, pipeline: QuestPipeline) -> int:
    """Collector role: scheduler in the background, ingest server in the foreground."""
    scheduler = BackgroundScheduler()
    fatal = threading.Event()
    server: uvicorn.Server | None = None

    def _on_fatal() -> None:
        fatal.set()
        driver.stop()
        if server is not None:
            server.should_exit = True

    def _job() -> None:
        if not run_tick(driver):
            _on_fatal()

    _add_pipeline_job(scheduler, config, _job)

    @asynccontextmanager
    async def lifespan(app):
        logger.info("Scheduler starting (interval=%d min)", config.fetch_interval_minutes)
        scheduler.start()
        yield
        logger.info("Scheduler shutting down; waiting for the current region to finish")
        driver.stop()
        scheduler.shutdown(wait=True)

    app = create_app(pipeline, config.ingest_token, on_fatal=_on_fatal, lifespan=lifespan)
    logger.info("Collector ingest server listening on %s:%d", config.ingest_host, config.ingest_port)
    server = uvicorn.Server(
        uvicorn.Config(app, host=config.ingest_host, port=config.ingest_port, log_config=None)
    )
    server.run()
    return 1 if fatal.is_set() else 0


def main() -> None:
    """Load config, set up logging, and run the configured role."""
    config = load_config()
    _setup_logging(config.log_level, config.log_format)

    logger.info(
        "Qwesty starting (role=%s, region=%s, regions=%d, filter=%s, interval=%d min, "
        "run_once=%s, storage=%s)",
        config.role,
        config.region,
        len(config.regions()),
        config.reward_filter,
        config.fetch_interval_minutes,
        config.run_once,
        "none" if config.is_agent else config.storage_type,
    )
    for sink in config.sinks:
        logger.info("Webhook configured: %s", sink.label)

    try:
        driver, pipeline = build_driver(config)
    except StorageError:
        logger.critical("Cannot load seen-set; refusing to start", exc_info=True)
        sys.exit(1)

    if config.run_once:
        ok = run_tick(driver, require_fetch=True)
        logger.info("RUN_ONCE mode: exiting after first check")
        sys.exit(0 if ok else 1)

    if config.is_collector:
        sys.exit(_serve_collector(config, driver, pipeline))
    sys.exit(_run_polling(config, driver))


if __name__ == "__main__":
    main()
