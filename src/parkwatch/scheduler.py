"""Periodic availability drift and change broadcast.

Every cycle walks all stored facilities, nudges their availability by a
small signed amount within ``[0, total]``, persists the change, sometimes
captures a history record, and emits a ``parking-update`` event.  A
failure on one facility is logged and the cycle moves on.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
import random
from collections.abc import Callable
from datetime import datetime

from parkwatch._constants import PARKING_UPDATE_EVENT
from parkwatch.history import HistoryRecorder
from parkwatch.models._base import utcnow
from parkwatch.models.facility import AvailabilityUpdate, Facility
from parkwatch.realtime.broadcast import Broadcaster
from parkwatch.store.base import RecordStore

_logger = logging.getLogger(__name__)


class BroadcastScheduler:
    """Self-scheduling broadcast job with a start/stop lifecycle.

    Cycles never overlap: a manual :meth:`run_cycle` issued while another
    cycle is in progress returns immediately, and a cycle that outruns its
    period makes the loop skip ahead to the next period boundary.
    """

    def __init__(
        self,
        store: RecordStore,
        broadcaster: Broadcaster,
        recorder: HistoryRecorder,
        *,
        period: float = 30.0,
        max_delta: int = 3,
        record_probability: float = 0.17,
        scoped: bool = False,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._broadcaster = broadcaster
        self._recorder = recorder
        self._period = period
        self._max_delta = max_delta
        self._record_probability = record_probability
        self._scoped = scoped
        self._rng = rng or random.Random()
        self._clock = clock
        self._task: asyncio.Task[None] | None = None
        self._in_cycle = False
        self.cycles_completed = 0
        self.cycles_skipped = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the recurring loop on the running event loop."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="parkwatch-broadcast")
        _logger.info("Broadcast scheduler started period=%.1fs", self._period)

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        _logger.info("Broadcast scheduler stopped after %d cycles", self.cycles_completed)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_due = loop.time() + self._period
        while True:
            await asyncio.sleep(max(0.0, next_due - loop.time()))
            try:
                await self.run_cycle()
            except Exception:
                _logger.warning("Broadcast cycle failed; retrying next period", exc_info=True)
            next_due += self._period
            now = loop.time()
            if now > next_due:
                missed = math.ceil((now - next_due) / self._period)
                next_due += missed * self._period
                self.cycles_skipped += missed
                _logger.warning("Broadcast cycle overran its period; skipping %d period(s)", missed)

    async def run_cycle(self) -> list[AvailabilityUpdate]:
        """Run one cycle now and return the emitted change events."""
        if self._in_cycle:
            _logger.debug("Broadcast cycle already in progress; skipping")
            return []
        self._in_cycle = True
        try:
            facilities = await self._store.find_facilities()
            updates: list[AvailabilityUpdate] = []
            for facility in facilities:
                try:
                    updates.append(await self._process(facility))
                except Exception:
                    _logger.warning("Broadcast update failed for facility id=%s", facility.id, exc_info=True)
            self.cycles_completed += 1
            return updates
        finally:
            self._in_cycle = False

    async def _process(self, facility: Facility) -> AvailabilityUpdate:
        change = self._rng.randint(-self._max_delta, self._max_delta)
        available = facility.clamp_spots(facility.available_spots + change)
        now = self._clock()
        updated = await self._store.update_facility(
            facility.id,
            {"available_spots": available, "last_update": now},
        )
        if updated is None:
            raise LookupError(f"facility {facility.id} vanished during broadcast cycle")

        if self._rng.random() < self._record_probability:
            try:
                await self._recorder.record_current_state(updated.id)
            except Exception:
                _logger.warning("History capture failed for facility id=%s", updated.id, exc_info=True)

        update = AvailabilityUpdate(
            facility_id=updated.id,
            available=updated.available_spots,
            timestamp=updated.last_update,
        )
        await self._broadcaster.broadcast(
            PARKING_UPDATE_EVENT,
            update.to_wire(),
            facility_id=updated.id if self._scoped else None,
        )
        return update
