"""Record-store contract consumed by the core.

Any persistence engine can back the service as long as it satisfies
:class:`RecordStore`.  History queries must return records sorted by
timestamp, newest first.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol

from parkwatch.models.facility import Facility, FacilityDraft
from parkwatch.models.history import HistoricalRecord
from parkwatch.models.prediction import PredictionCacheEntry


class RecordStore(Protocol):
    async def create_facility(self, draft: FacilityDraft, *, now: datetime) -> Facility:
        ...

    async def find_facility(self, facility_id: str) -> Facility | None:
        ...

    async def find_facilities(self, *, limit: int | None = None) -> list[Facility]:
        ...

    async def update_facility(self, facility_id: str, changes: dict[str, Any]) -> Facility | None:
        ...

    async def delete_facility(self, facility_id: str) -> bool:
        ...

    async def create_history(self, record: HistoricalRecord) -> HistoricalRecord:
        ...

    async def find_history(
        self,
        facility_id: str,
        *,
        day_of_week: int | None = None,
        hour: int | None = None,
        limit: int | None = None,
    ) -> list[HistoricalRecord]:
        ...

    async def create_prediction(self, entry: PredictionCacheEntry) -> PredictionCacheEntry:
        ...

    async def find_unexpired_prediction(
        self,
        facility_id: str,
        *,
        predicted_for_after: datetime,
        now: datetime,
    ) -> PredictionCacheEntry | None:
        ...
