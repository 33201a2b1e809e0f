"""Ingestion — quest fetching, parsing, and deduplication."""

from qwesty.ingestion.client import QuestClient
from qwesty.ingestion.dedup import DedupResult, Deduplicator
from qwesty.ingestion.quest import QuestRecord

__all__ = ["DedupResult", "Deduplicator", "QuestClient", "QuestRecord"]
