"""Historical occupancy observation model."""

from __future__ import annotations

from datetime import datetime, tzinfo

from pydantic import Field

from parkwatch.models._base import ParkwatchBaseModel, Timestamp
from parkwatch.models.facility import Facility


def day_of_week(moment: datetime) -> int:
    """Day index with Sunday = 0 through Saturday = 6."""
    return moment.isoweekday() % 7


class HistoricalRecord(ParkwatchBaseModel):
    """Immutable time-stamped observation of one facility's occupancy.

    ``day_of_week`` (Sunday = 0) and ``hour`` are bucketed in the
    service's configured time zone so pattern matching lines up with
    local traffic rhythms.
    """

    facility_id: str
    timestamp: Timestamp
    available_spots: int = Field(ge=0)
    occupancy_rate: float = Field(ge=0.0, le=100.0)
    day_of_week: int = Field(ge=0, le=6)
    hour: int = Field(ge=0, le=23)
    is_holiday: bool = False

    @classmethod
    def capture(
        cls,
        facility: Facility,
        at: datetime,
        tz: tzinfo,
        *,
        is_holiday: bool = False,
    ) -> HistoricalRecord:
        local = at.astimezone(tz)
        return cls(
            facility_id=facility.id,
            timestamp=at,
            available_spots=facility.available_spots,
            occupancy_rate=facility.occupancy_rate,
            day_of_week=day_of_week(local),
            hour=local.hour,
            is_holiday=is_holiday,
        )
