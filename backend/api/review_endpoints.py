"""
Review Queue API Endpoints

Metrics and application review endpoints. Every response carries
`server_info` so clients can attribute it to the instance that served it.
"""

from fastapi import APIRouter, HTTPException

from models.review import (
    ApplicationsResponse,
    DecisionRequest,
    DecisionResponse,
    MetricsResponse,
    ServerInfo,
    ServerInstance,
)
from services.health_reporter import health_reporter
from services.review_queue import ApplicationNotFoundError, review_queue
from utils.datetime_utils import format_iso_utc
from utils.logging import get_logger

logger = get_logger("review-api")
router = APIRouter(prefix="/api", tags=["Review Queue"])


def get_server_info() -> ServerInfo:
    """Attribution block built from the reporter's latest instance identity."""
    identity = health_reporter.identity
    return ServerInfo(
        instance=ServerInstance(
            id=identity.id,
            type=identity.type,
            availability_zone=identity.availability_zone,
            region=identity.region,
        ),
        timestamp=format_iso_utc(),
    )


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics():
    """Review queue counters plus server attribution."""
    return MetricsResponse(
        data=review_queue.metrics(),
        server_info=get_server_info(),
        timestamp=format_iso_utc(),
    )


@router.get("/applications", response_model=ApplicationsResponse)
async def get_applications():
    """All applications in the review queue."""
    return ApplicationsResponse(
        data=review_queue.list_applications(),
        server_info=get_server_info(),
        timestamp=format_iso_utc(),
    )


@router.post("/applications/{application_id}/decision", response_model=DecisionResponse)
async def submit_decision(application_id: str, decision: DecisionRequest):
    """
    Record a reviewer decision.

    Raises:
        HTTPException: 404 if the application does not exist
    """
    try:
        review_queue.record_decision(application_id, decision)
    except ApplicationNotFoundError:
        logger.warning("Decision for unknown application", application_id=application_id)
        raise HTTPException(status_code=404, detail=f"Application '{application_id}' not found")

    return DecisionResponse(
        message=f"Decision {decision.decision} recorded for application {application_id}",
        server_info=get_server_info(),
        timestamp=format_iso_utc(),
    )
