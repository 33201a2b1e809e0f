"""Tests for qwesty.main — role wiring."""

from __future__ import annotations

import pytest

from qwesty.config import Config, Sink
from qwesty.errors import StorageError
from qwesty.main import build_driver


def test_agent_gets_forwarder_and_no_store():
    config = Config(
        quest_api_token="tok",
        role="agent",
        region="ja",
        collector_url="http://collector:8080/ingest",
        collector_token="shared",
    )
    driver, pipeline = build_driver(config)
    assert pipeline is None
    assert driver.regions == ["ja"]


def test_standalone_gets_pipeline(tmp_path):
    config = Config(
        quest_api_token="tok",
        storage_type="json",
        storage_path=str(tmp_path / "seen.json"),
        sinks=(Sink(url="https://hooks.example.com/1"),),
    )
    driver, pipeline = build_driver(config)
    assert pipeline is not None
    assert len(pipeline.store) == 0
    assert driver.regions == ["en-US"]


def test_corrupt_store_fails_startup(tmp_path):
    path = tmp_path / "seen.json"
    path.write_text("{not json")
    config = Config(quest_api_token="tok", storage_path=str(path), sinks=(Sink(url="https://x"),))
    with pytest.raises(StorageError):
        build_driver(config)
