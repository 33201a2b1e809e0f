"""API route handlers for the collector ingest API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from qwesty.errors import MalformedRequestError
from qwesty.ingestion.quest import QuestRecord
from qwesty.web.deps import require_bearer_token
from qwesty.web.models import HealthResponse, IngestRequest, IngestResponse

logger = logging.getLogger(__name__)

router = APIRouter()
health_router = APIRouter()


@health_router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    """Liveness only; touches nothing."""
    return HealthResponse(status="ok")


def to_records(body: IngestRequest) -> list[QuestRecord]:
    """Convert a validated ingest body into QuestRecords tagged with the batch region."""
    region = body.region.strip()
    if not region:
        raise MalformedRequestError("region must be non-empty")
    return [
        QuestRecord(
            id=q.id,
            region=region,
            name=q.name,
            game=q.game,
            reward_category=q.reward_category,
            reward_name=q.reward_name,
            expires_at=q.expires_at,
            starts_at=q.starts_at,
            metadata=dict(q.metadata),
        )
        for q in body.quests
    ]


@router.post(
    "/ingest",
    response_model=IngestResponse,
    dependencies=[Depends(require_bearer_token)],
)
def ingest(request: Request, body: IngestRequest) -> IngestResponse:
    records = to_records(body)
    region = body.region.strip()
    logger.info(
        "Received ingest from source %s for region %s (%d quests)",
        body.source, region, len(records),
    )

    pipeline = request.app.state.pipeline
    result = pipeline.handle(region, records)

    if result.delivery.failures:
        logger.warning(
            "Ingest from %s: %s", body.source, result.delivery.error,
        )

    accepted = len(result.dedup.accepted)
    return IngestResponse(accepted=accepted, deduped=len(records) - accepted)
