import asyncio
import logging
import statistics
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import case, distinct, func, select

from app.core.sink import EventSink
from app.models.event import AnalyticsEvent
from app.schemas.analytics import (
    ClickHotspot,
    DashboardData,
    DashboardResponse,
    DeviceBreakdown,
    GeoBreakdown,
    HourlyViews,
    JourneyStep,
    JourneySummary,
    PagePerformance,
    PerformanceResponse,
    RealtimeMetrics,
    RealtimeResponse,
    TopPage,
    UserJourneyResponse,
)

logger = logging.getLogger(__name__)

TIME_RANGES: dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}
DEFAULT_TIME_RANGE = "24h"

TOP_PAGES_LIMIT = 20
GEO_LIMIT = 50
HEATMAP_LIMIT = 100
HEATMAP_MIN_CLICKS = 5
PERFORMANCE_MIN_SAMPLES = 10


def resolve_time_range(token: str | None) -> tuple[str, timedelta]:
    """Map a range token to its window; unknown or missing tokens mean 24h."""
    if token in TIME_RANGES:
        return token, TIME_RANGES[token]  # type: ignore[index]
    return DEFAULT_TIME_RANGE, TIME_RANGES[DEFAULT_TIME_RANGE]


def _as_datetime(value: Any) -> datetime:
    return value if isinstance(value, datetime) else datetime.fromisoformat(value)


class AnalyticsService:
    """Read-only aggregation queries over the events table."""

    def __init__(self, sink: EventSink):
        self.sink = sink

    def _hour_bucket(self):
        col = AnalyticsEvent.timestamp
        if self.sink.dialect_name == "sqlite":
            return func.strftime("%Y-%m-%d %H:00:00", col)
        return func.date_trunc("hour", col)

    async def get_dashboard(self, time_range: str | None = None) -> DashboardResponse:
        """Run the five dashboard aggregations concurrently."""
        token, window = resolve_time_range(time_range)
        now = datetime.now(timezone.utc)
        since = now - window
        e = AnalyticsEvent

        bucket = self._hour_bucket()
        hourly_q = (
            select(
                bucket.label("hour"),
                func.count().label("page_views"),
                func.count(distinct(e.session_id)).label("unique_sessions"),
                func.count(distinct(e.user_id)).label("unique_users"),
            )
            .where(e.event_type == "page_view", e.timestamp >= since)
            .group_by(bucket)
            .order_by(bucket)
        )

        views = func.count().label("views")
        top_pages_q = (
            select(
                e.page_url,
                views,
                func.count(distinct(e.session_id)).label("unique_sessions"),
                func.avg(e.page_load_time).label("avg_load_time"),
                func.avg(e.max_scroll_depth).label("avg_scroll_depth"),
            )
            .where(e.event_type == "page_view", e.timestamp >= since)
            .group_by(e.page_url)
            .order_by(views.desc())
            .limit(TOP_PAGES_LIMIT)
        )

        sessions = func.count().label("sessions")
        device_q = (
            select(
                e.device_type,
                e.browser,
                sessions,
                func.avg(e.session_duration).label("avg_duration"),
            )
            .where(e.event_type.in_(("page_view", "session_start")), e.timestamp >= since)
            .group_by(e.device_type, e.browser)
            .order_by(sessions.desc())
        )

        geo_q = (
            select(
                e.country,
                e.city,
                sessions,
                func.count(distinct(e.user_id)).label("unique_users"),
            )
            .where(e.timestamp >= since)
            .group_by(e.country, e.city)
            .order_by(sessions.desc())
            .limit(GEO_LIMIT)
        )

        clicks = func.count().label("clicks")
        heatmap_q = (
            select(
                e.page_url,
                e.element_tag,
                e.element_id,
                e.element_class,
                clicks,
                func.avg(e.click_x).label("avg_x"),
                func.avg(e.click_y).label("avg_y"),
            )
            .where(e.event_type == "click", e.timestamp >= since)
            .group_by(e.page_url, e.element_tag, e.element_id, e.element_class)
            .having(func.count() > HEATMAP_MIN_CLICKS)
            .order_by(clicks.desc())
            .limit(HEATMAP_LIMIT)
        )

        hourly, top_pages, devices, geo, heatmap = await asyncio.gather(
            self.sink.fetch_all(hourly_q),
            self.sink.fetch_all(top_pages_q),
            self.sink.fetch_all(device_q),
            self.sink.fetch_all(geo_q),
            self.sink.fetch_all(heatmap_q),
        )

        return DashboardResponse(
            time_range=token,
            generated_at=now,
            data=DashboardData(
                hourly_views=[
                    HourlyViews(**{**row, "hour": _as_datetime(row["hour"])}) for row in hourly
                ],
                top_pages=[TopPage(**row) for row in top_pages],
                device_breakdown=[DeviceBreakdown(**row) for row in devices],
                geographic=[GeoBreakdown(**row) for row in geo],
                click_heatmap=[ClickHotspot(**row) for row in heatmap],
            ),
        )

    async def get_realtime(self) -> RealtimeResponse:
        """Activity over the last hour."""
        now = datetime.now(timezone.utc)
        e = AnalyticsEvent
        q = select(
            func.count(distinct(e.session_id)).label("active_sessions"),
            func.count(distinct(e.user_id)).label("active_users"),
            func.coalesce(func.sum(case((e.event_type == "page_view", 1), else_=0)), 0).label(
                "page_views_last_hour"
            ),
            func.coalesce(func.sum(case((e.event_type == "click", 1), else_=0)), 0).label(
                "clicks_last_hour"
            ),
        ).where(e.timestamp >= now - timedelta(hours=1))

        rows = await self.sink.fetch_all(q)
        return RealtimeResponse(timestamp=now, metrics=RealtimeMetrics(**rows[0]))

    async def get_user_journey(self, session_id: str) -> UserJourneyResponse:
        """All events of one session in timestamp order.

        ``session_id`` is sent as a bound parameter, never interpolated.
        """
        e = AnalyticsEvent
        q = (
            select(
                e.timestamp,
                e.event_type,
                e.page_url,
                e.page_title,
                e.element_tag,
                e.element_id,
                e.scroll_depth,
                e.session_duration,
            )
            .where(e.session_id == session_id)
            .order_by(e.timestamp, e.id)
        )
        steps = [JourneyStep(**row) for row in await self.sink.fetch_all(q)]

        pages = {step.page_url for step in steps if step.event_type == "page_view"}
        return UserJourneyResponse(
            session_id=session_id,
            events=steps,
            summary=JourneySummary(
                total_events=len(steps),
                duration=max((step.session_duration for step in steps), default=0),
                pages_visited=len(pages),
            ),
        )

    async def get_performance(self) -> PerformanceResponse:
        """Load-time distribution per page over the last 24 hours.

        Quantiles are computed here rather than in SQL so the same code runs
        against every supported backend.
        """
        now = datetime.now(timezone.utc)
        e = AnalyticsEvent
        q = select(e.page_url, e.page_load_time).where(
            e.event_type == "page_view",
            e.page_load_time > 0,
            e.timestamp >= now - timedelta(hours=24),
        )
        samples: dict[str, list[int]] = {}
        for row in await self.sink.fetch_all(q):
            samples.setdefault(row["page_url"], []).append(row["page_load_time"])

        pages = [
            PagePerformance(
                page_url=url,
                avg_load_time=statistics.fmean(values),
                median_load_time=statistics.median(values),
                p95_load_time=statistics.quantiles(values, n=20, method="inclusive")[18],
                samples=len(values),
            )
            for url, values in samples.items()
            if len(values) >= PERFORMANCE_MIN_SAMPLES
        ]
        pages.sort(key=lambda p: p.avg_load_time, reverse=True)
        return PerformanceResponse(timestamp=now, page_performance=pages)
