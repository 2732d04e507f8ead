from fastapi import APIRouter, Depends, Path, Query, Request

from app.api.deps import get_analytics_service
from app.core.config import settings
from app.core.limiter import limiter
from app.schemas.analytics import (
    DashboardResponse,
    PerformanceResponse,
    RealtimeResponse,
    UserJourneyResponse,
)
from app.services.analytics_service import AnalyticsService

router = APIRouter()


@router.get("/dashboard", response_model=DashboardResponse)
@limiter.limit(settings.QUERY_RATE_LIMIT)
async def get_dashboard(
    request: Request,
    time_range: str | None = Query(None, description="One of 1h, 24h, 7d, 30d (default 24h)"),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Hourly views, top pages, devices, geography and click hotspots."""
    return await service.get_dashboard(time_range)


@router.get("/realtime", response_model=RealtimeResponse)
@limiter.limit(settings.QUERY_RATE_LIMIT)
async def get_realtime(
    request: Request,
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Sessions, users, page views and clicks over the last hour."""
    return await service.get_realtime()


@router.get("/user-journey/{session_id}", response_model=UserJourneyResponse)
@limiter.limit(settings.QUERY_RATE_LIMIT)
async def get_user_journey(
    request: Request,
    session_id: str = Path(..., min_length=1, max_length=128),
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Every event recorded for one session, oldest first."""
    return await service.get_user_journey(session_id)


@router.get("/performance", response_model=PerformanceResponse)
@limiter.limit(settings.QUERY_RATE_LIMIT)
async def get_performance(
    request: Request,
    service: AnalyticsService = Depends(get_analytics_service),
):
    """Page load time percentiles over the last 24 hours."""
    return await service.get_performance()
