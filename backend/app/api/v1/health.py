import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from app.api.deps import get_sink
from app.core.sink import EventSink
from app.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=HealthResponse)
async def health_check(sink: EventSink = Depends(get_sink)):
    """Liveness probe - round-trips to the event store."""
    try:
        await sink.ping()
    except Exception as exc:
        logger.error("Health check failed: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "error": str(exc)},
        )
    return HealthResponse(status="healthy", timestamp=datetime.now(timezone.utc))
