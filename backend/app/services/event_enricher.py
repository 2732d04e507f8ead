"""Server-side enrichment of validated telemetry events.

Enrichment never fails for a validated event: every sub-field that cannot be
derived falls back to a documented default (``"Unknown"`` for geo and client
families, ``""`` for versions and strings, ``0`` for measurements and ``1``
for ``page_count``).
"""

import logging
import math
import re
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from app.core.providers import ClientInfo, GeoLocation, GeoProvider, UserAgentParser
from app.schemas.event import KNOWN_FIELDS, NUMERIC_DEFAULTS, STRING_FIELDS, EnrichedEvent
from app.services.event_validator import ValidatedEvent

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

INT_MIN = -(2**31)
INT_MAX = 2**31 - 1
_MAX_INT_DIGITS = len(str(INT_MAX))


@dataclass(frozen=True)
class EnrichmentContext:
    """Request-scoped inputs to enrichment."""

    client_ip: str
    user_agent: str
    now: datetime


def resolve_client_ip(
    forwarded_for: str | None, real_ip: str | None, remote_addr: str | None
) -> str:
    """Pick the caller's IP: first X-Forwarded-For hop, then X-Real-IP, then the socket."""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return remote_addr or ""


def build_context(
    headers: Mapping[str, str], remote_addr: str | None, now: datetime | None = None
) -> EnrichmentContext:
    return EnrichmentContext(
        client_ip=resolve_client_ip(
            headers.get("x-forwarded-for"), headers.get("x-real-ip"), remote_addr
        ),
        user_agent=headers.get("user-agent") or "",
        now=now or datetime.now(timezone.utc),
    )


def generate_event_id() -> str:
    """Random 8-4-4-4-12 identifier with version 4 and RFC 4122 variant bits."""
    return str(uuid.uuid4())


def coerce_int(value: Any, default: int) -> int:
    """Parse the leading integer of ``value``; zero, junk or absence yield ``default``.

    Values outside the store's 32-bit integer columns count as junk.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            return default
        parsed = int(value)
    elif isinstance(value, str):
        match = _LEADING_INT.match(value)
        if not match or len(match.group(1).lstrip("+-")) > _MAX_INT_DIGITS:
            return default
        parsed = int(match.group(1))
    else:
        return default
    if not INT_MIN <= parsed <= INT_MAX:
        return default
    return parsed or default


def coerce_str(value: Any) -> str:
    if value is None or value is False:
        return ""
    return value if isinstance(value, str) else str(value)


def parse_timestamp(value: Any, fallback: datetime) -> datetime:
    """Accept ISO-8601 strings or datetimes; anything else becomes ``fallback``."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.debug("Unparseable client timestamp %r, using server time", value)
            return fallback
    else:
        if value not in (None, ""):
            logger.debug("Non-ISO client timestamp %r, using server time", value)
        return fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class EventEnricher:
    """Derives geo, client and identity fields for validated events.

    Holds only read-only providers, so one instance serves every request.
    """

    def __init__(self, geo_provider: GeoProvider, ua_parser: UserAgentParser):
        self.geo_provider = geo_provider
        self.ua_parser = ua_parser

    def _lookup_geo(self, ip: str) -> GeoLocation:
        try:
            return self.geo_provider.lookup(ip) or GeoLocation()
        except Exception:
            logger.debug("Geo lookup failed for %r", ip, exc_info=True)
            return GeoLocation()

    def _parse_client(self, user_agent: str) -> ClientInfo:
        try:
            return self.ua_parser.parse(user_agent)
        except Exception:
            logger.debug("User-agent parse failed for %r", user_agent, exc_info=True)
            return ClientInfo()

    def enrich(self, event: ValidatedEvent, context: EnrichmentContext) -> EnrichedEvent:
        geo = self._lookup_geo(context.client_ip)

        user_agent = coerce_str(event.get("user_agent")) or context.user_agent
        client = self._parse_client(user_agent)

        numeric = {
            field: coerce_int(event.get(field), default)
            for field, default in NUMERIC_DEFAULTS.items()
        }
        strings = {field: coerce_str(event.get(field)) for field in STRING_FIELDS}

        properties = event.get("properties")
        extras: dict[str, Any] = dict(properties) if isinstance(properties, Mapping) else {}
        extras.update((key, value) for key, value in event.items() if key not in KNOWN_FIELDS)

        return EnrichedEvent(
            event_id=coerce_str(event.get("event_id")) or generate_event_id(),
            session_id=event.session_id,
            user_id=coerce_str(event.get("user_id")),
            event_type=event.event_type,
            timestamp=parse_timestamp(event.get("timestamp"), context.now),
            server_timestamp=context.now,
            page_url=event.page_url,
            country=geo.country or UNKNOWN,
            city=geo.city or UNKNOWN,
            user_agent=user_agent,
            browser=client.browser or coerce_str(event.get("browser")) or UNKNOWN,
            browser_version=client.browser_version or "",
            os=client.os or coerce_str(event.get("os")) or UNKNOWN,
            os_version=client.os_version or "",
            device_type=client.device_type or coerce_str(event.get("device_type")) or UNKNOWN,
            properties=extras,
            **numeric,
            **strings,
        )
