import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from app.core.exceptions import EventValidationError, SinkWriteError
from app.core.sink import EventSink
from app.schemas.event import EnrichedEvent, RejectionRecord
from app.services.event_enricher import EnrichmentContext, EventEnricher
from app.services.event_validator import validate_event

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of one request's batch, both lists in request order."""

    accepted: list[EnrichedEvent] = field(default_factory=list)
    rejected: list[RejectionRecord] = field(default_factory=list)


class BatchProcessor:
    """Validates, enriches and stores one request's events as a single batch."""

    def __init__(self, enricher: EventEnricher, sink: EventSink, write_timeout: float | None = None):
        self.enricher = enricher
        self.sink = sink
        self.write_timeout = write_timeout

    def partition(self, events: Sequence[Any], context: EnrichmentContext) -> BatchResult:
        """Run every event through validation and enrichment independently."""
        result = BatchResult()
        for index, raw in enumerate(events):
            try:
                validated = validate_event(raw)
            except EventValidationError as exc:
                result.rejected.append(RejectionRecord(index=index, error=exc.reason))
                continue
            result.accepted.append(self.enricher.enrich(validated, context))

        if result.rejected:
            logger.debug(
                "Rejected %d of %d events: %s",
                len(result.rejected),
                len(events),
                [r.error for r in result.rejected],
            )
        return result

    async def process_batch(
        self, events: Sequence[Any], context: EnrichmentContext
    ) -> BatchResult:
        """Partition the events and write the accepted ones in one insert.

        Nothing is written when no event is accepted; the caller decides how
        to report that.

        Raises:
            SinkWriteError: the insert failed or did not finish within
                ``write_timeout``. Not retried.
        """
        result = self.partition(events, context)
        if not result.accepted:
            return result

        rows = [event.model_dump() for event in result.accepted]
        try:
            await asyncio.wait_for(self.sink.insert_batch(rows), timeout=self.write_timeout)
        except asyncio.TimeoutError as exc:
            logger.error(
                "Batch insert of %d events timed out after %ss", len(rows), self.write_timeout
            )
            raise SinkWriteError("Batch insert timed out") from exc
        except Exception as exc:
            logger.error("Batch insert of %d events failed: %s", len(rows), exc)
            raise SinkWriteError("Batch insert failed") from exc

        logger.info("Processed %d analytics events", len(rows))
        return result
