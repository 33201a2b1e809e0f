"""Tests for qwesty.ingestion.dedup — the Deduplicator."""

from __future__ import annotations

import threading

from qwesty.ingestion.dedup import Deduplicator, matches_filter
from qwesty.ingestion.quest import QuestRecord
from qwesty.storage import JsonSeenStore, MemorySeenStore


def _record(quest_id, region="en-US", category="orbs"):
    return QuestRecord(
        id=quest_id,
        region=region,
        name=f"Quest {quest_id}",
        game="Game",
        reward_category=category,
        expires_at="2025-07-01T00:00:00+00:00",
    )


class TestMatchesFilter:
    def test_all_passes_everything(self):
        assert matches_filter(_record("1", category="decor"), "all")

    def test_category_filter(self):
        assert matches_filter(_record("1", category="orbs"), "orbs")
        assert not matches_filter(_record("1", category="decor"), "orbs")


class TestDeduplicator:
    def test_new_quests_accepted_and_marked(self):
        store = MemorySeenStore()
        result = Deduplicator(store).process("en-US", [_record("A"), _record("B")])

        assert [r.id for r in result.accepted] == ["A", "B"]
        assert result.rejected_count == 0
        assert store.contains("en-US", "A")
        assert store.contains("en-US", "B")

    def test_second_pass_rejects_everything(self):
        store = MemorySeenStore()
        dedup = Deduplicator(store)
        batch = [_record("A"), _record("B")]
        dedup.process("en-US", batch)
        size_after_first = len(store)

        result = dedup.process("en-US", batch)

        assert result.accepted == []
        assert result.rejected_count == 2
        assert len(store) == size_after_first

    def test_same_id_in_another_region_is_new(self):
        store = MemorySeenStore()
        dedup = Deduplicator(store)
        dedup.process("en-US", [_record("A")])

        result = dedup.process("ko-KR", [_record("A", region="ko-KR")])

        assert [r.id for r in result.accepted] == ["A"]
        assert len(store) == 2

    def test_filter_applies_before_storage(self):
        store = MemorySeenStore()
        batch = [
            _record("1", category="orbs"),
            _record("2", category="decor"),
            _record("3", category="orbs"),
            _record("4", category="other"),
            _record("5", category="orbs"),
        ]

        result = Deduplicator(store, reward_filter="orbs").process("en-US", batch)

        assert [r.id for r in result.accepted] == ["1", "3", "5"]
        assert result.filtered_count == 2
        assert not store.contains("en-US", "2")
        assert not store.contains("en-US", "4")

    def test_preserves_input_order(self):
        store = MemorySeenStore()
        store.mark_seen("en-US", "B")

        result = Deduplicator(store).process("en-US", [_record("C"), _record("B"), _record("A")])

        assert [r.id for r in result.accepted] == ["C", "A"]
        assert result.rejected_count == 1

    def test_duplicate_within_batch(self):
        store = MemorySeenStore()
        result = Deduplicator(store).process("en-US", [_record("A"), _record("A")])

        assert len(result.accepted) == 1
        assert result.rejected_count == 1

    def test_empty_batch(self):
        result = Deduplicator(MemorySeenStore()).process("en-US", [])
        assert result.accepted == []
        assert result.rejected_count == 0
        assert result.filtered_count == 0

    def test_persists_through_json_store(self, tmp_path):
        path = str(tmp_path / "seen.json")
        Deduplicator(JsonSeenStore(path)).process("en-US", [_record("A")])

        result = Deduplicator(JsonSeenStore(path)).process("en-US", [_record("A")])

        assert result.accepted == []
        assert result.rejected_count == 1

    def test_concurrent_callers_accept_once(self):
        store = MemorySeenStore()
        dedup = Deduplicator(store)
        workers = 8
        barrier = threading.Barrier(workers)
        results = []
        results_lock = threading.Lock()

        def run():
            barrier.wait()
            result = dedup.process("en-US", [_record("A")])
            with results_lock:
                results.append(result)

        threads = [threading.Thread(target=run) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sum(len(r.accepted) for r in results) == 1
        assert sum(r.rejected_count for r in results) == workers - 1
        assert len(store) == 1
