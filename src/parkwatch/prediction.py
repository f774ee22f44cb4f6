"""Short-horizon availability forecasts.

The forecast blends three signals with fixed weights::

    predicted = round(0.6 * pattern_avg + 0.3 * current + 0.1 * trend)

``pattern_avg`` is the mean availability over the 20 most recent records
sharing the target day-of-week and hour, and ``trend`` is the mean of the
latest three records minus the mean of the three before them.  Confidence
shrinks with the spread of the pattern set and is held within
``[70, 95]``.  Without any pattern records the engine falls back to the
current count with a small jitter and a flat 60% confidence.
"""

from __future__ import annotations

import logging
import math
import random
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, tzinfo

from parkwatch._constants import (
    CONFIDENCE_CEILING,
    CONFIDENCE_FLOOR,
    CURRENT_WEIGHT,
    NO_DATA_CONFIDENCE,
    NO_DATA_JITTER,
    PATTERN_SAMPLE_LIMIT,
    PATTERN_WEIGHT,
    TREND_SAMPLE_LIMIT,
    TREND_WEIGHT,
)
from parkwatch.exceptions import FacilityNotFoundError
from parkwatch.models._base import utcnow
from parkwatch.models.history import HistoricalRecord, day_of_week
from parkwatch.models.prediction import Prediction
from parkwatch.store.base import RecordStore

_logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _mean(values: Sequence[int]) -> float:
    return sum(values) / len(values)


def population_std_dev(values: Sequence[int]) -> float:
    avg = _mean(values)
    return math.sqrt(sum((v - avg) ** 2 for v in values) / len(values))


def compute_trend(recent: Sequence[HistoricalRecord]) -> float:
    """Mean of the latest half minus mean of the prior half (newest first).

    Uses at most three records per half; fewer than two records means no
    trend.
    """
    if len(recent) < 2:
        return 0.0
    half = min(3, len(recent) // 2)
    latest = [r.available_spots for r in recent[:half]]
    prior = [r.available_spots for r in recent[half : half * 2]]
    return _mean(latest) - _mean(prior)


def blend(pattern_avg: float, current: int, trend: float, total: int) -> int:
    """Weighted forecast clamped to ``[0, total]``."""
    raw = round_half_up(PATTERN_WEIGHT * pattern_avg + CURRENT_WEIGHT * current + TREND_WEIGHT * trend)
    return max(0, min(total, raw))


def pattern_confidence(std_dev: float, total: int) -> int:
    score = 100 - (std_dev / total) * 100
    return round_half_up(min(CONFIDENCE_CEILING, max(CONFIDENCE_FLOOR, score)))


class PredictionEngine:
    """Forecast availability from history plus current state."""

    def __init__(
        self,
        store: RecordStore,
        tz: tzinfo,
        *,
        clock: Callable[[], datetime] = utcnow,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._tz = tz
        self._clock = clock
        self._rng = rng or random.Random()

    async def predict(self, facility_id: str, minutes_ahead: int = 30) -> Prediction:
        """Forecast availability *minutes_ahead* from now.

        Raises
        ------
        FacilityNotFoundError
            When *facility_id* is unknown; no forecast is synthesized.
        """
        facility = await self._store.find_facility(facility_id)
        if facility is None:
            raise FacilityNotFoundError(facility_id)

        target = self._clock() + timedelta(minutes=minutes_ahead)
        local = target.astimezone(self._tz)
        matched = await self._store.find_history(
            facility_id,
            day_of_week=day_of_week(local),
            hour=local.hour,
            limit=PATTERN_SAMPLE_LIMIT,
        )

        if not matched:
            jitter = self._rng.randint(-NO_DATA_JITTER, NO_DATA_JITTER - 1)
            _logger.debug("No pattern history for id=%s; low-confidence estimate", facility_id)
            return Prediction(
                predicted_spots=facility.clamp_spots(facility.available_spots + jitter),
                confidence=NO_DATA_CONFIDENCE,
                predicted_for=target,
            )

        values = [r.available_spots for r in matched]
        pattern_avg = _mean(values)
        recent = await self._store.find_history(facility_id, limit=TREND_SAMPLE_LIMIT)
        trend = compute_trend(recent)

        predicted = blend(pattern_avg, facility.available_spots, trend, facility.total_spots)
        confidence = pattern_confidence(population_std_dev(values), facility.total_spots)
        _logger.debug(
            "Prediction id=%s matched=%d avg=%.2f trend=%.2f -> %d (%d%%)",
            facility_id,
            len(matched),
            pattern_avg,
            trend,
            predicted,
            confidence,
        )
        return Prediction(predicted_spots=predicted, confidence=confidence, predicted_for=target)
