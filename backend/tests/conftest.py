import os
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

# Set test env vars before importing app modules
os.environ["REDIS_URL"] = "memory://"
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"

from app.core.providers import ClientInfo, GeoLocation  # noqa: E402
from app.core.sink import EventSink, create_engine_from_settings  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.services.event_enricher import EnrichmentContext, EventEnricher  # noqa: E402

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

CHROME_MAC_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class FakeGeoProvider:
    """Deterministic geo lookups keyed by IP."""

    def __init__(self, table: dict[str, GeoLocation] | None = None):
        self.table = table or {
            "203.0.113.7": GeoLocation(country="DE", city="Berlin"),
            "198.51.100.1": GeoLocation(country="US", city=None),
        }
        self.lookups: list[str] = []

    def lookup(self, ip: str) -> GeoLocation | None:
        self.lookups.append(ip)
        return self.table.get(ip)

    def close(self) -> None:
        pass


class FakeUserAgentParser:
    """Recognises a handful of fixed strings; everything else is unknown."""

    def __init__(self, table: dict[str, ClientInfo] | None = None):
        self.table = table or {
            CHROME_MAC_UA: ClientInfo(
                browser="Chrome",
                browser_version="120.0.0",
                os="Mac OS X",
                os_version="10.15.7",
                device_type="Desktop",
            ),
            "TestBot/1.0": ClientInfo(browser="TestBot", browser_version="1.0", device_type="Bot"),
        }

    def parse(self, user_agent: str) -> ClientInfo:
        return self.table.get(user_agent, ClientInfo())


class RecordingSink:
    """Stand-in sink that records insert calls and can be told to fail."""

    dialect_name = "sqlite"

    def __init__(self, fail_with: Exception | None = None):
        self.fail_with = fail_with
        self.insert_calls: list[list[dict]] = []

    async def insert_batch(self, rows):
        self.insert_calls.append(list(rows))
        if self.fail_with is not None:
            raise self.fail_with

    async def ping(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def fetch_all(self, statement):
        return []

    async def close(self) -> None:
        pass


def make_event(**overrides) -> dict:
    event = {
        "session_id": "sess_1",
        "event_type": "page_view",
        "page_url": "https://example.com/",
    }
    event.update(overrides)
    return event


@pytest.fixture
def enricher() -> EventEnricher:
    return EventEnricher(FakeGeoProvider(), FakeUserAgentParser())


@pytest.fixture
def context() -> EnrichmentContext:
    return EnrichmentContext(client_ip="203.0.113.7", user_agent=CHROME_MAC_UA, now=FIXED_NOW)


@pytest.fixture
async def sink() -> AsyncGenerator[EventSink, None]:
    sink = EventSink(create_engine_from_settings())
    await sink.initialize()
    yield sink
    async with sink.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await sink.close()


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


async def _client_for(sink, enricher) -> AsyncGenerator[AsyncClient, None]:
    from app.core.limiter import limiter
    from app.main import app

    # Disable rate limiting in tests
    limiter.enabled = False

    app.state.sink = sink
    app.state.enricher = enricher

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def client(sink: EventSink, enricher: EventEnricher) -> AsyncGenerator[AsyncClient, None]:
    """Client backed by a real SQLite event store."""
    async for ac in _client_for(sink, enricher):
        yield ac


@pytest.fixture
async def recording_client(
    recording_sink: RecordingSink, enricher: EventEnricher
) -> AsyncGenerator[AsyncClient, None]:
    """Client whose store only records insert calls."""
    async for ac in _client_for(recording_sink, enricher):
        yield ac
