"""Application exceptions.

Pipeline errors are plain exceptions that the ingest route and the handlers
in ``app.main`` translate into response bodies.
"""

from typing import Any


class EventValidationError(Exception):
    """A single raw event is malformed. Recovered into a rejection record."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class RequestShapeError(Exception):
    """The request body cannot be handed to the batch processor."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NoValidEventsError(Exception):
    """Every event in the request was rejected."""

    def __init__(self, rejections: list[dict[str, Any]]):
        super().__init__("No valid events to process")
        self.rejections = rejections


class SinkWriteError(Exception):
    """The batch insert into the event store failed or timed out."""
