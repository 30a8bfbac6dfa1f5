import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from rendezvous.core.config import settings
from rendezvous.db import engine
from rendezvous.services.events import EventPublisher, get_publisher

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", summary="Health check", tags=["health"])
def read_health() -> dict[str, str]:
    """Liveness probe. Touches no backing service."""
    return {"status": "ok"}


@router.get("/ready", summary="Readiness check", tags=["health"])
def read_ready(publisher: EventPublisher = Depends(get_publisher)):
    """
    Readiness probe.

    The schedule store is required: when it does not answer the probe fails
    with 503. The event bus only carries real-time pushes, so a Redis outage
    is reported as ``degraded`` while the service stays ready.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Readiness check: schedule store unreachable: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "not_ready",
                "database": "disconnected",
                "error": str(e) if settings.ENVIRONMENT != "production" else "Database connection failed",
            },
        )

    return {
        "status": "ready",
        "database": "connected",
        "events": "connected" if publisher.ping() else "degraded",
    }
