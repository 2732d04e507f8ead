from datetime import datetime

from pydantic import BaseModel


class HourlyViews(BaseModel):
    """Page views bucketed by hour."""

    hour: datetime
    page_views: int
    unique_sessions: int
    unique_users: int


class TopPage(BaseModel):
    page_url: str
    views: int
    unique_sessions: int
    avg_load_time: float
    avg_scroll_depth: float


class DeviceBreakdown(BaseModel):
    device_type: str
    browser: str
    sessions: int
    avg_duration: float


class GeoBreakdown(BaseModel):
    country: str
    city: str
    sessions: int
    unique_users: int


class ClickHotspot(BaseModel):
    page_url: str
    element_tag: str
    element_id: str
    element_class: str
    clicks: int
    avg_x: float
    avg_y: float


class DashboardData(BaseModel):
    hourly_views: list[HourlyViews]
    top_pages: list[TopPage]
    device_breakdown: list[DeviceBreakdown]
    geographic: list[GeoBreakdown]
    click_heatmap: list[ClickHotspot]


class DashboardResponse(BaseModel):
    """Dashboard groupings for one time range."""

    time_range: str
    generated_at: datetime
    data: DashboardData


class RealtimeMetrics(BaseModel):
    active_sessions: int
    active_users: int
    page_views_last_hour: int
    clicks_last_hour: int


class RealtimeResponse(BaseModel):
    realtime: bool = True
    timestamp: datetime
    metrics: RealtimeMetrics


class JourneyStep(BaseModel):
    timestamp: datetime
    event_type: str
    page_url: str
    page_title: str
    element_tag: str
    element_id: str
    scroll_depth: int
    session_duration: int


class JourneySummary(BaseModel):
    total_events: int
    duration: int
    pages_visited: int


class UserJourneyResponse(BaseModel):
    """Ordered events of one session with a short summary."""

    session_id: str
    events: list[JourneyStep]
    summary: JourneySummary


class PagePerformance(BaseModel):
    page_url: str
    avg_load_time: float
    median_load_time: float
    p95_load_time: float
    samples: int


class PerformanceResponse(BaseModel):
    timestamp: datetime
    page_performance: list[PagePerformance]
