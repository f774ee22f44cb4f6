"""Parking facility models."""

from __future__ import annotations

from pydantic import Field, field_validator, model_validator

from parkwatch.models._base import ParkwatchBaseModel, Timestamp, utcnow


class Location(ParkwatchBaseModel):
    """Geolocation in degrees."""

    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class Sensor(ParkwatchBaseModel):
    """Occupancy sensor reading for a single spot."""

    spot_id: str
    is_occupied: bool = False
    last_update: Timestamp | None = None


class FacilityDraft(ParkwatchBaseModel):
    """Payload accepted when creating a facility.

    Enforces ``0 <= available_spots <= total_spots``.
    """

    name: str = Field(min_length=1)
    total_spots: int = Field(gt=0)
    available_spots: int = Field(ge=0)
    location: Location
    sensors: list[Sensor] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        name = value.strip()
        if not name:
            raise ValueError("name must be non-empty")
        return name

    @model_validator(mode="after")
    def _check_bounds(self) -> FacilityDraft:
        if self.available_spots > self.total_spots:
            raise ValueError(
                f"available_spots ({self.available_spots}) exceeds total_spots ({self.total_spots})"
            )
        return self


class Facility(ParkwatchBaseModel):
    """One physical parking area.

    Parameters
    ----------
    id : str
        Stable identifier.  Upstream facilities carry the ``osm-`` prefix.
    name : str
        Display name.
    total_spots : int
        Capacity, always positive.
    available_spots : int
        Currently free spots, within ``[0, total_spots]``.
    location : Location
        Geolocation in degrees.
    last_update : datetime
        When ``available_spots`` last changed.
    predicted_availability : int or None
        Derived forecast, within the same bounds as ``available_spots``.
    confidence : int or None
        Forecast confidence as a percentage.
    sensors : list of Sensor
        Optional per-spot sensor readings.
    """

    id: str = Field(min_length=1)
    name: str
    total_spots: int = Field(gt=0)
    available_spots: int = Field(ge=0)
    location: Location
    last_update: Timestamp = Field(default_factory=utcnow)
    predicted_availability: int | None = Field(default=None, ge=0)
    confidence: int | None = Field(default=None, ge=0, le=100)
    sensors: list[Sensor] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_bounds(self) -> Facility:
        if self.available_spots > self.total_spots:
            raise ValueError(
                f"available_spots ({self.available_spots}) exceeds total_spots ({self.total_spots})"
            )
        if self.predicted_availability is not None and self.predicted_availability > self.total_spots:
            raise ValueError(
                f"predicted_availability ({self.predicted_availability}) exceeds total_spots ({self.total_spots})"
            )
        return self

    @property
    def occupancy_rate(self) -> float:
        """Occupied share of capacity as a percentage."""
        return (self.total_spots - self.available_spots) / self.total_spots * 100

    def clamp_spots(self, value: int) -> int:
        """Clamp *value* into ``[0, total_spots]``."""
        return max(0, min(self.total_spots, value))


class FacilityStats(ParkwatchBaseModel):
    """Aggregate figures over every stored facility."""

    count: int
    total_spots: int
    total_available: int
    avg_occupancy: float

    @classmethod
    def from_facilities(cls, facilities: list[Facility]) -> FacilityStats:
        total = sum(f.total_spots for f in facilities)
        available = sum(f.available_spots for f in facilities)
        avg = round((total - available) / total * 100, 1) if total else 0.0
        return cls(count=len(facilities), total_spots=total, total_available=available, avg_occupancy=avg)


class AvailabilityUpdate(ParkwatchBaseModel):
    """Change event relayed to real-time subscribers."""

    facility_id: str
    available: int
    timestamp: Timestamp
