"""Forecast models."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from parkwatch.models._base import ParkwatchBaseModel, Timestamp


class Prediction(ParkwatchBaseModel):
    """Forecast availability for a facility at ``predicted_for``."""

    predicted_spots: int = Field(ge=0)
    confidence: int = Field(ge=0, le=100)
    predicted_for: Timestamp


class PredictionCacheEntry(ParkwatchBaseModel):
    """Store-backed memo of a computed forecast."""

    facility_id: str
    predicted_spots: int = Field(ge=0)
    confidence: int = Field(ge=0, le=100)
    predicted_for: Timestamp
    created_at: Timestamp
    expires_at: Timestamp

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_prediction(self) -> Prediction:
        return Prediction(
            predicted_spots=self.predicted_spots,
            confidence=self.confidence,
            predicted_for=self.predicted_for,
        )
