"""
Health API Endpoints

Serves the plaintext liveness check and the detailed health snapshot
written by the health reporter.
"""

from fastapi import APIRouter, HTTPException
from fastapi.responses import PlainTextResponse, Response

from config import settings
from utils.logging import get_logger

logger = get_logger("health-api")
router = APIRouter(tags=["Health"])

NO_CACHE_HEADERS = {"Cache-Control": "no-cache, no-store, must-revalidate"}


@router.get("/health", response_class=PlainTextResponse)
async def health() -> str:
    """Liveness check; answers as long as the process is serving requests."""
    return "healthy\n"


@router.get("/health-detailed")
async def health_detailed() -> Response:
    """
    Return the latest health snapshot exactly as written to disk.

    The file is always replaced atomically, so this never serves a partial
    document. Before the first reporter cycle there is nothing to serve and
    the endpoint answers 503, which sends dashboards to the plaintext check.
    """
    try:
        with open(settings.HEALTH_SNAPSHOT_PATH, "rb") as f:
            body = f.read()
    except FileNotFoundError:
        logger.warning("Health snapshot not written yet", path=settings.HEALTH_SNAPSHOT_PATH)
        raise HTTPException(status_code=503, detail="Health snapshot not available yet")
    except OSError as e:
        logger.error("Failed to read health snapshot", path=settings.HEALTH_SNAPSHOT_PATH, error=str(e))
        raise HTTPException(status_code=503, detail="Health snapshot unreadable")

    return Response(content=body, media_type="application/json", headers=NO_CACHE_HEADERS)
