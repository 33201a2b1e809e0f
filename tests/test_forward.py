"""Tests for qwesty.forward — agent to collector forwarding."""

from __future__ import annotations

from unittest.mock import patch

import httpx
import pytest

from qwesty.errors import ForwardError
from qwesty.forward import Forwarder, ForwardResult
from qwesty.ingestion.quest import QuestRecord


def _record(quest_id):
    return QuestRecord(
        id=quest_id,
        region="ja",
        name=f"Quest {quest_id}",
        game="Game",
        reward_category="orbs",
        expires_at="2025-07-01T00:00:00+00:00",
    )


def _forwarder():
    return Forwarder("http://collector:8080/ingest", "shared", source_label="agent-jp", timeout=5)


@patch("qwesty.forward.httpx.post")
class TestForwarder:
    def test_posts_batch_with_bearer_token(self, mock_post):
        mock_post.return_value = httpx.Response(200, json={"accepted": 1, "deduped": 1})

        result = _forwarder().forward("ja", [_record("1"), _record("2")])

        assert result == ForwardResult(accepted=1, deduped=1)
        url = mock_post.call_args.args[0]
        kwargs = mock_post.call_args.kwargs
        assert url == "http://collector:8080/ingest"
        assert kwargs["headers"] == {"Authorization": "Bearer shared"}
        assert kwargs["json"]["region"] == "ja"
        assert kwargs["json"]["source"] == "agent-jp"
        assert [q["id"] for q in kwargs["json"]["quests"]] == ["1", "2"]
        assert "region" not in kwargs["json"]["quests"][0]

    def test_empty_batch_still_posts(self, mock_post):
        mock_post.return_value = httpx.Response(200, json={"accepted": 0, "deduped": 0})
        assert _forwarder().forward("ja", []) == ForwardResult(0, 0)
        assert mock_post.call_args.kwargs["json"]["quests"] == []

    def test_non_2xx_raises(self, mock_post):
        mock_post.return_value = httpx.Response(401, json={"detail": "invalid token"})
        with pytest.raises(ForwardError, match="HTTP 401"):
            _forwarder().forward("ja", [_record("1")])

    def test_transport_failure_raises(self, mock_post):
        mock_post.side_effect = httpx.ConnectError("connection refused")
        with pytest.raises(ForwardError, match="connection refused"):
            _forwarder().forward("ja", [_record("1")])

    def test_unreadable_ack_is_tolerated(self, mock_post):
        mock_post.return_value = httpx.Response(200, content=b"ok")
        assert _forwarder().forward("ja", [_record("1")]) == ForwardResult(0, 0)
