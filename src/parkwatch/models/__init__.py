"""Data models for parkwatch entities."""

from parkwatch.models._base import ParkwatchBaseModel, Timestamp, parse_timestamp
from parkwatch.models.facility import (
    AvailabilityUpdate,
    Facility,
    FacilityDraft,
    FacilityStats,
    Location,
    Sensor,
)
from parkwatch.models.history import HistoricalRecord, day_of_week
from parkwatch.models.prediction import Prediction, PredictionCacheEntry

__all__ = [
    "AvailabilityUpdate",
    "Facility",
    "FacilityDraft",
    "FacilityStats",
    "HistoricalRecord",
    "Location",
    "ParkwatchBaseModel",
    "Prediction",
    "PredictionCacheEntry",
    "Sensor",
    "Timestamp",
    "day_of_week",
    "parse_timestamp",
]
