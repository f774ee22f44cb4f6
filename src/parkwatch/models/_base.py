"""Base model for parkwatch entities.

Every entity inherits from :class:`ParkwatchBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase wire keys (``totalSpots``,
  ``availableSpots``) map automatically to snake_case fields.
* ``frozen=True``; updates are expressed as ``model_copy(update=...)``
  replacements so a snapshot held by a cache never changes underneath it.
* ``to_wire()`` for the camelCase JSON shape consumed by the HTTP layer
  and by real-time subscribers.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic.alias_generators import to_camel

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> Any:
    """Coerce epoch seconds or milliseconds to an aware UTC datetime.

    Strings and datetimes are passed through for pydantic to parse; naive
    datetimes are assumed to be UTC.
    """
    if value is None:
        return value
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        return datetime.fromtimestamp(ts, tz=UTC)
    return value


Timestamp = Annotated[datetime, BeforeValidator(parse_timestamp)]
"""Annotated type accepting datetimes, ISO strings and epoch seconds/ms."""


def utcnow() -> datetime:
    return datetime.now(UTC)


class ParkwatchBaseModel(BaseModel):
    """Base for parkwatch entity models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self) -> dict[str, Any]:
        """Return the camelCase JSON-compatible representation."""
        return self.model_dump(mode="json", by_alias=True)
