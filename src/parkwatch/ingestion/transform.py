"""Map raw Overpass elements onto the canonical facility shape.

The mapping is pure: every synthesized number is drawn from a
``random.Random`` seeded with ``(seed, element id)``, so the same element
always yields the same facility for a given seed.  That keeps cached
snapshots and fresh fetches interchangeable.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from parkwatch._constants import (
    OSM_PREFIX,
    SYNTH_CAPACITY_MIN,
    SYNTH_CAPACITY_SPAN,
    SYNTH_CONFIDENCE_BASE,
    SYNTH_CONFIDENCE_SPAN,
    SYNTH_OCCUPANCY_BASE,
    SYNTH_OCCUPANCY_SPAN,
    SYNTH_PREDICTION_JITTER,
)
from parkwatch.ingestion.normalize import positive_int, safe_float, safe_str
from parkwatch.models.facility import Facility, Location

_logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 50


def element_rng(seed: int, element_id: Any) -> random.Random:
    """Deterministic randomness source for one upstream element."""
    return random.Random(f"{seed}:{element_id}")


def _coordinate(value: Any, limit: float) -> float | None:
    parsed = safe_float(value)
    if parsed is None or not -limit <= parsed <= limit:
        return None
    return parsed


def _resolve_location(element: dict[str, Any], fallback_lat: float, fallback_lng: float) -> Location:
    lat = _coordinate(element.get("lat"), 90.0)
    lng = _coordinate(element.get("lon"), 180.0)
    if lat is None or lng is None:
        center = element.get("center")
        if isinstance(center, dict):
            lat = lat if lat is not None else _coordinate(center.get("lat"), 90.0)
            lng = lng if lng is not None else _coordinate(center.get("lon"), 180.0)
    return Location(
        lat=lat if lat is not None else fallback_lat,
        lng=lng if lng is not None else fallback_lng,
    )


def transform_element(
    element: dict[str, Any],
    index: int,
    *,
    seed: int,
    fallback_lat: float,
    fallback_lng: float,
    now: datetime,
) -> Facility:
    """Map one element; *index* numbers anonymous lots (``Parking Lot 3``)."""
    element_id = element.get("id")
    rng = element_rng(seed, element_id)
    tags = element.get("tags") if isinstance(element.get("tags"), dict) else {}

    capacity = positive_int(tags.get("capacity"))
    if capacity is None:
        capacity = SYNTH_CAPACITY_MIN + rng.randrange(SYNTH_CAPACITY_SPAN)
    occupied = int(capacity * (SYNTH_OCCUPANCY_BASE + rng.random() * SYNTH_OCCUPANCY_SPAN))
    available = max(0, capacity - occupied)

    jitter = rng.randint(-SYNTH_PREDICTION_JITTER, SYNTH_PREDICTION_JITTER - 1)
    predicted = max(0, min(capacity, available + jitter))
    confidence = SYNTH_CONFIDENCE_BASE + rng.randrange(SYNTH_CONFIDENCE_SPAN)

    return Facility(
        id=f"{OSM_PREFIX}{element_id}",
        name=safe_str(tags.get("name")) or f"Parking Lot {index + 1}",
        total_spots=capacity,
        available_spots=available,
        location=_resolve_location(element, fallback_lat, fallback_lng),
        last_update=now,
        predicted_availability=predicted,
        confidence=confidence,
    )


def transform_elements(
    elements: Iterable[dict[str, Any]],
    *,
    seed: int,
    fallback_lat: float,
    fallback_lng: float,
    now: datetime,
    limit: int = DEFAULT_MAX_RESULTS,
) -> list[Facility]:
    """Map up to *limit* raw elements to facilities, skipping id-less ones."""
    facilities: list[Facility] = []
    for index, element in enumerate(elements):
        if len(facilities) >= limit:
            break
        if element.get("id") is None:
            _logger.debug("Skipping Overpass element without id at index=%d", index)
            continue
        facilities.append(
            transform_element(
                element,
                index,
                seed=seed,
                fallback_lat=fallback_lat,
                fallback_lng=fallback_lng,
                now=now,
            )
        )
    return facilities
