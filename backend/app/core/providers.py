"""Geo and user-agent lookup providers used by the event enricher.

Both are plain in-memory lookups: the GeoIP database is loaded into memory
once at startup, and user-agent parsing is a regex match. Neither touches the
network or disk while a request is being enriched.
"""

import logging
from dataclasses import dataclass
from typing import Protocol

import geoip2.database
import geoip2.errors
from geoip2.database import MODE_MEMORY
from user_agents import parse as parse_user_agent

logger = logging.getLogger(__name__)

UNKNOWN_FAMILY = "Other"


@dataclass(frozen=True)
class GeoLocation:
    country: str | None = None
    city: str | None = None


@dataclass(frozen=True)
class ClientInfo:
    browser: str | None = None
    browser_version: str = ""
    os: str | None = None
    os_version: str = ""
    device_type: str | None = None


class GeoProvider(Protocol):
    def lookup(self, ip: str) -> GeoLocation | None: ...

    def close(self) -> None: ...


class UserAgentParser(Protocol):
    def parse(self, user_agent: str) -> ClientInfo: ...


class NullGeoProvider:
    """Used when no GeoIP database is configured."""

    def lookup(self, ip: str) -> GeoLocation | None:
        return None

    def close(self) -> None:
        pass


class GeoIP2Provider:
    """MaxMind city database lookup, reporting ISO country codes."""

    def __init__(self, database_path: str):
        self._reader = geoip2.database.Reader(database_path, mode=MODE_MEMORY)

    def lookup(self, ip: str) -> GeoLocation | None:
        if not ip:
            return None
        try:
            response = self._reader.city(ip)
        except (geoip2.errors.AddressNotFoundError, ValueError):
            return None
        return GeoLocation(country=response.country.iso_code, city=response.city.name)

    def close(self) -> None:
        self._reader.close()


class UserAgentsParser:
    """Decompose a user-agent string with the ``user_agents`` package."""

    def parse(self, user_agent: str) -> ClientInfo:
        if not user_agent:
            return ClientInfo()
        ua = parse_user_agent(user_agent)
        browser = ua.browser.family if ua.browser.family != UNKNOWN_FAMILY else None
        os_family = ua.os.family if ua.os.family != UNKNOWN_FAMILY else None
        return ClientInfo(
            browser=browser,
            browser_version=ua.browser.version_string if browser else "",
            os=os_family,
            os_version=ua.os.version_string if os_family else "",
            device_type=_device_type(ua),
        )


def _device_type(ua) -> str | None:
    if ua.is_bot:
        return "Bot"
    if ua.is_tablet:
        return "Tablet"
    if ua.is_mobile:
        return "Mobile"
    if ua.is_pc:
        return "Desktop"
    return None


def create_geo_provider(database_path: str | None) -> GeoProvider:
    """Open the configured GeoIP database, or fall back to no lookups."""
    if not database_path:
        logger.info("GEOIP_DATABASE_PATH not set; country/city will be 'Unknown'")
        return NullGeoProvider()
    logger.info("Loading GeoIP database from %s", database_path)
    return GeoIP2Provider(database_path)
