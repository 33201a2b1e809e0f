"""Pydantic v2 request/response models for the collector ingest API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Ingest
# ---------------------------------------------------------------------------
class IngestQuest(BaseModel):
    id: str = Field(min_length=1)
    name: str
    game: str
    reward_category: Literal["orbs", "decor", "other"] = "other"
    reward_name: str = "Unknown Reward"
    expires_at: str
    starts_at: str | None = None
    metadata: dict = Field(default_factory=dict)


class IngestRequest(BaseModel):
    region: str
    quests: list[IngestQuest]
    source: str = "unknown"


class IngestResponse(BaseModel):
    accepted: int
    deduped: int


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
class HealthResponse(BaseModel):
    status: str
