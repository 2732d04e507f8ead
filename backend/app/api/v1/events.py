import logging

from fastapi import APIRouter, Depends, Request

from app.api.deps import get_batch_processor
from app.core.config import settings
from app.core.exceptions import NoValidEventsError, RequestShapeError
from app.core.limiter import limiter
from app.schemas.common import ErrorResponse
from app.schemas.event import EventsRequest, EventsResponse
from app.services.event_enricher import build_context
from app.services.event_service import BatchProcessor

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/events",
    response_model=EventsResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
@limiter.limit(settings.INGEST_RATE_LIMIT)
async def ingest_events(
    request: Request,
    data: EventsRequest,
    processor: BatchProcessor = Depends(get_batch_processor),
):
    """Validate, enrich and store a batch of telemetry events.

    Invalid events are reported by index and do not block the rest of the
    batch. All accepted events go to the store in a single insert.
    """
    events = data.events
    if not events:
        raise RequestShapeError("Events array is required and must not be empty")
    if len(events) > settings.MAX_EVENTS_PER_REQUEST:
        raise RequestShapeError(
            f"Too many events in single request (max {settings.MAX_EVENTS_PER_REQUEST})"
        )

    context = build_context(
        request.headers, request.client.host if request.client else None
    )
    result = await processor.process_batch(events, context)

    if not result.accepted:
        logger.info("No valid events in request of %d", len(events))
        raise NoValidEventsError([r.model_dump() for r in result.rejected])

    return EventsResponse(processed=len(result.accepted), errors=result.rejected or None)
