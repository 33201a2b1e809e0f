"""Tests for the /health endpoint."""

from __future__ import annotations

from fastapi.testclient import TestClient

from qwesty.ingestion.dedup import Deduplicator
from qwesty.notify.webhook import WebhookNotifier
from qwesty.pipeline import QuestPipeline
from qwesty.storage import MemorySeenStore
from qwesty.web.app import create_app


def _client(store):
    pipeline = QuestPipeline(Deduplicator(store), WebhookNotifier([]))
    return TestClient(create_app(pipeline, "secret"))


class TestHealthEndpoint:
    def test_healthy_response_without_auth(self):
        resp = _client(MemorySeenStore()).get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_does_not_touch_store(self):
        store = MemorySeenStore()
        client = _client(store)
        client.get("/health")
        client.get("/health")
        assert len(store) == 0

    def test_ingest_is_post_only(self):
        resp = _client(MemorySeenStore()).get("/ingest")
        assert resp.status_code == 405
