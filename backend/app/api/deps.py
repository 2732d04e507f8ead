from fastapi import Depends, Request

from app.core.config import settings
from app.core.sink import EventSink
from app.services.analytics_service import AnalyticsService
from app.services.event_enricher import EventEnricher
from app.services.event_service import BatchProcessor


async def get_sink(request: Request) -> EventSink:
    """FastAPI dependency: returns the event sink from ``app.state``."""
    return request.app.state.sink  # type: ignore[no-any-return]


async def get_enricher(request: Request) -> EventEnricher:
    return request.app.state.enricher  # type: ignore[no-any-return]


async def get_batch_processor(
    sink: EventSink = Depends(get_sink),
    enricher: EventEnricher = Depends(get_enricher),
) -> BatchProcessor:
    return BatchProcessor(enricher, sink, write_timeout=settings.SINK_WRITE_TIMEOUT_SECONDS)


async def get_analytics_service(sink: EventSink = Depends(get_sink)) -> AnalyticsService:
    return AnalyticsService(sink)
