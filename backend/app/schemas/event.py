from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

EVENT_TYPES = frozenset(
    {
        "page_view",
        "click",
        "scroll",
        "session_start",
        "session_end",
        "page_exit",
        "custom",
        "session_update",
    }
)

REQUIRED_FIELDS = ("session_id", "event_type", "page_url")


class EventsRequest(BaseModel):
    """Schema for event ingestion: a batch of raw client events.

    Items stay untyped: each one is validated individually so a bad event
    is rejected on its own instead of failing the whole request.
    """

    events: list[Any] | None = None


class RejectionRecord(BaseModel):
    """A rejected event and the reason, keyed by its position in the request."""

    index: int
    error: str


class EventsResponse(BaseModel):
    """Schema for a (partially) successful ingestion."""

    success: bool = True
    processed: int
    errors: list[RejectionRecord] | None = None


class EnrichedEvent(BaseModel):
    """An accepted event with all server-derived fields filled in."""

    model_config = ConfigDict(frozen=True)

    event_id: str
    session_id: str
    user_id: str = ""
    event_type: str
    timestamp: datetime
    server_timestamp: datetime

    page_url: str
    page_title: str = ""
    referrer: str = ""

    country: str = "Unknown"
    city: str = "Unknown"

    user_agent: str = ""
    browser: str = "Unknown"
    browser_version: str = ""
    os: str = "Unknown"
    os_version: str = ""
    device_type: str = "Unknown"

    element_id: str = ""
    element_class: str = ""
    element_tag: str = ""
    element_text: str = ""

    page_load_time: int = 0
    scroll_depth: int = 0
    max_scroll_depth: int = 0
    session_duration: int = 0
    page_count: int = 1
    click_x: int = 0
    click_y: int = 0
    screen_width: int = 0
    screen_height: int = 0
    viewport_width: int = 0
    viewport_height: int = 0

    properties: dict[str, Any] = Field(default_factory=dict)


NUMERIC_DEFAULTS: dict[str, int] = {
    "page_load_time": 0,
    "scroll_depth": 0,
    "max_scroll_depth": 0,
    "session_duration": 0,
    "page_count": 1,
    "click_x": 0,
    "click_y": 0,
    "screen_width": 0,
    "screen_height": 0,
    "viewport_width": 0,
    "viewport_height": 0,
}

STRING_FIELDS = (
    "element_id",
    "element_class",
    "element_tag",
    "element_text",
    "referrer",
    "page_title",
)

KNOWN_FIELDS = frozenset(EnrichedEvent.model_fields)
