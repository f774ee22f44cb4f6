"""Deterministic in-memory record store.

Reference implementation of :class:`~parkwatch.store.base.RecordStore`
used by tests, scripts and single-process deployments.
"""

from __future__ import annotations

import asyncio
import bisect
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from parkwatch.models.facility import Facility, FacilityDraft
from parkwatch.models.history import HistoricalRecord
from parkwatch.models.prediction import PredictionCacheEntry


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryRecordStore:
    """Dict-backed store; each facility's history is kept sorted by timestamp."""

    def __init__(self, *, id_factory: Callable[[], str] = _new_id) -> None:
        self._id_factory = id_factory
        self._facilities: dict[str, Facility] = {}
        self._history: dict[str, list[HistoricalRecord]] = {}
        self._predictions: dict[str, list[PredictionCacheEntry]] = {}
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Facilities
    # ------------------------------------------------------------------

    async def create_facility(self, draft: FacilityDraft, *, now: datetime) -> Facility:
        facility = Facility(
            id=self._id_factory(),
            name=draft.name,
            total_spots=draft.total_spots,
            available_spots=draft.available_spots,
            location=draft.location,
            sensors=draft.sensors,
            last_update=now,
        )
        async with self._lock:
            self._facilities[facility.id] = facility
        return facility

    async def add_facility(self, facility: Facility) -> Facility:
        """Insert a facility with a caller-chosen id (replaces any existing one)."""
        async with self._lock:
            self._facilities[facility.id] = facility
        return facility

    async def find_facility(self, facility_id: str) -> Facility | None:
        return self._facilities.get(facility_id)

    async def find_facilities(self, *, limit: int | None = None) -> list[Facility]:
        facilities = list(self._facilities.values())
        return facilities if limit is None else facilities[:limit]

    async def update_facility(self, facility_id: str, changes: dict[str, Any]) -> Facility | None:
        async with self._lock:
            current = self._facilities.get(facility_id)
            if current is None:
                return None
            # Re-validate so store-level invariants hold for every write.
            updated = Facility.model_validate({**current.model_dump(), **changes})
            self._facilities[facility_id] = updated
        return updated

    async def delete_facility(self, facility_id: str) -> bool:
        async with self._lock:
            removed = self._facilities.pop(facility_id, None)
            self._history.pop(facility_id, None)
            self._predictions.pop(facility_id, None)
        return removed is not None

    async def count_facilities(self) -> int:
        return len(self._facilities)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def create_history(self, record: HistoricalRecord) -> HistoricalRecord:
        async with self._lock:
            records = self._history.setdefault(record.facility_id, [])
            bisect.insort(records, record, key=lambda r: r.timestamp)
        return record

    async def find_history(
        self,
        facility_id: str,
        *,
        day_of_week: int | None = None,
        hour: int | None = None,
        limit: int | None = None,
    ) -> list[HistoricalRecord]:
        matched: list[HistoricalRecord] = []
        for record in reversed(self._history.get(facility_id, [])):
            if day_of_week is not None and record.day_of_week != day_of_week:
                continue
            if hour is not None and record.hour != hour:
                continue
            matched.append(record)
            if limit is not None and len(matched) >= limit:
                break
        return matched

    # ------------------------------------------------------------------
    # Prediction memo
    # ------------------------------------------------------------------

    async def create_prediction(self, entry: PredictionCacheEntry) -> PredictionCacheEntry:
        async with self._lock:
            self._predictions.setdefault(entry.facility_id, []).append(entry)
        return entry

    async def find_unexpired_prediction(
        self,
        facility_id: str,
        *,
        predicted_for_after: datetime,
        now: datetime,
    ) -> PredictionCacheEntry | None:
        async with self._lock:
            entries = self._predictions.get(facility_id, [])
            live = [e for e in entries if not e.is_expired(now)]
            self._predictions[facility_id] = live
        for entry in reversed(live):
            if entry.predicted_for >= predicted_for_after:
                return entry
        return None
