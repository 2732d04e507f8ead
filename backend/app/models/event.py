from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from app.core.config import settings
from app.db.base import Base


class AnalyticsEvent(Base):
    """Enriched telemetry event, append-only, one row per accepted event."""

    __tablename__ = settings.EVENTS_TABLE

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity
    event_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    session_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(Text, nullable=False, default="")
    event_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    server_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Page
    page_url: Mapped[str] = mapped_column(Text, nullable=False)
    page_title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    referrer: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Geography
    country: Mapped[str] = mapped_column(String(64), nullable=False, default="Unknown")
    city: Mapped[str] = mapped_column(String(128), nullable=False, default="Unknown")

    # Client
    user_agent: Mapped[str] = mapped_column(Text, nullable=False, default="")
    browser: Mapped[str] = mapped_column(Text, nullable=False, default="Unknown")
    browser_version: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    os: Mapped[str] = mapped_column(Text, nullable=False, default="Unknown")
    os_version: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    device_type: Mapped[str] = mapped_column(Text, nullable=False, default="Unknown")

    # Element (clicks)
    element_id: Mapped[str] = mapped_column(Text, nullable=False, default="")
    element_class: Mapped[str] = mapped_column(Text, nullable=False, default="")
    element_tag: Mapped[str] = mapped_column(Text, nullable=False, default="")
    element_text: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Measurements
    page_load_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    scroll_depth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_scroll_depth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    session_duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    page_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    click_x: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    click_y: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    screen_width: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    screen_height: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    viewport_width: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    viewport_height: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Client fields outside the fixed column set
    properties: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
