from collections.abc import Mapping
from typing import Any

from app.core.exceptions import EventValidationError
from app.schemas.event import EVENT_TYPES, REQUIRED_FIELDS


class ValidatedEvent:
    """Read-only view over a raw event that passed validation.

    Required fields are guaranteed present; everything else is looked up
    with an explicit default.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any]):
        self._data = data

    @property
    def session_id(self) -> str:
        return str(self._data["session_id"])

    @property
    def event_type(self) -> str:
        return str(self._data["event_type"])

    @property
    def page_url(self) -> str:
        return str(self._data["page_url"])

    def get(self, field: str, default: Any = None) -> Any:
        return self._data.get(field, default)

    def items(self):
        return self._data.items()


def validate_event(raw: Any) -> ValidatedEvent:
    """Check a single raw event.

    Raises:
        EventValidationError: every missing required field is listed in one
            reason, or the event type is not one of ``EVENT_TYPES``.
    """
    if not isinstance(raw, Mapping):
        raise EventValidationError("Event must be a JSON object")

    missing = [field for field in REQUIRED_FIELDS if not raw.get(field)]
    if missing:
        raise EventValidationError(f"Missing required fields: {', '.join(missing)}")

    event_type = raw["event_type"]
    if not isinstance(event_type, str) or event_type not in EVENT_TYPES:
        raise EventValidationError(f"Invalid event type: {event_type}")

    return ValidatedEvent(raw)
