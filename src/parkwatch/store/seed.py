"""Demo data for empty stores."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, tzinfo

from parkwatch.models.facility import FacilityDraft, Location
from parkwatch.models.history import HistoricalRecord, day_of_week
from parkwatch.store.memory import InMemoryRecordStore

_logger = logging.getLogger(__name__)

DEMO_FACILITIES: tuple[FacilityDraft, ...] = (
    FacilityDraft(
        name="North Campus Lot A",
        total_spots=150,
        available_spots=45,
        location=Location(lat=33.4242, lng=-111.9281),
    ),
    FacilityDraft(
        name="South Campus Lot B",
        total_spots=200,
        available_spots=12,
        location=Location(lat=33.4225, lng=-111.9265),
    ),
    FacilityDraft(
        name="Engineering Building Lot",
        total_spots=80,
        available_spots=65,
        location=Location(lat=33.4258, lng=-111.9298),
    ),
    FacilityDraft(
        name="Student Center Garage",
        total_spots=300,
        available_spots=5,
        location=Location(lat=33.4210, lng=-111.9250),
    ),
)

HISTORY_SAMPLES = 100
HISTORY_STEP = timedelta(minutes=30)


async def seed_demo_facilities(
    store: InMemoryRecordStore,
    *,
    now: datetime,
    tz: tzinfo,
) -> bool:
    """Seed demo facilities plus half-hourly history when *store* is empty.

    Occupancy follows a daily sine wave around 60%.  Returns ``False``
    without touching the store if it already holds facilities.
    """
    if await store.count_facilities():
        return False

    for draft in DEMO_FACILITIES:
        facility = await store.create_facility(draft, now=now)
        for i in range(HISTORY_SAMPLES):
            timestamp = now - i * HISTORY_STEP
            local = timestamp.astimezone(tz)
            occupancy = 0.6 + math.sin(local.hour / 24 * math.pi * 2) * 0.3
            await store.create_history(
                HistoricalRecord(
                    facility_id=facility.id,
                    timestamp=timestamp,
                    available_spots=int(facility.total_spots * (1 - occupancy)),
                    occupancy_rate=occupancy * 100,
                    day_of_week=day_of_week(local),
                    hour=local.hour,
                )
            )
    _logger.info("Seeded %d demo facilities with %d history records each", len(DEMO_FACILITIES), HISTORY_SAMPLES)
    return True
