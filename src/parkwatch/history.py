"""Capture historical occupancy snapshots."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, tzinfo

from parkwatch.models._base import utcnow
from parkwatch.models.history import HistoricalRecord
from parkwatch.store.base import RecordStore

_logger = logging.getLogger(__name__)


def _no_holidays(_day: date) -> bool:
    return False


class HistoryRecorder:
    """Record the current state of a facility as an immutable observation."""

    def __init__(
        self,
        store: RecordStore,
        tz: tzinfo,
        *,
        clock: Callable[[], datetime] = utcnow,
        is_holiday: Callable[[date], bool] = _no_holidays,
    ) -> None:
        self._store = store
        self._tz = tz
        self._clock = clock
        self._is_holiday = is_holiday

    async def record_current_state(self, facility_id: str) -> HistoricalRecord | None:
        """Capture a record for *facility_id*; ``None`` when it does not exist."""
        facility = await self._store.find_facility(facility_id)
        if facility is None:
            _logger.debug("Skipping history capture for unknown facility id=%s", facility_id)
            return None
        now = self._clock()
        record = HistoricalRecord.capture(
            facility,
            now,
            self._tz,
            is_holiday=self._is_holiday(now.astimezone(self._tz).date()),
        )
        return await self._store.create_history(record)
