"""Process-wide handle on the analytical event store."""

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy import Select, insert, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from app.core.config import settings
from app.db.base import Base
from app.models.event import AnalyticsEvent

logger = logging.getLogger(__name__)


def create_engine_from_settings(url: str | None = None) -> AsyncEngine:
    """Build the async engine. Pool sizing is skipped for SQLite."""
    url = url or settings.DATABASE_URL
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False)
    return create_async_engine(
        url,
        echo=False,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


class EventSink:
    """Batch-insert and read-only query capability over the events table.

    Built once at startup and shared by every request. The engine's
    connection pool handles concurrent inserts and queries, so callers
    never lock around it.
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    async def initialize(self) -> None:
        """Create the events table if missing and verify connectivity.

        Raises whatever the driver raises; callers treat that as fatal.
        """
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await self.ping()
        logger.info("Event sink ready (%s)", self.dialect_name)

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def insert_batch(self, rows: Sequence[dict[str, Any]]) -> None:
        """Insert all rows in one statement."""
        if not rows:
            return
        async with self.engine.begin() as conn:
            await conn.execute(insert(AnalyticsEvent.__table__), list(rows))

    async def fetch_all(self, statement: Select) -> list[dict[str, Any]]:
        """Run a read query and return rows as plain dicts."""
        async with self.engine.connect() as conn:
            result = await conn.execute(statement)
            return [dict(row) for row in result.mappings().all()]

    async def close(self) -> None:
        await self.engine.dispose()
