"""Two-tier in-memory facility cache shielding the upstream mirrors.

The area tier holds exactly one snapshot (most recent write wins); the
entity tier holds per-facility snapshots.  Both tiers expire lazily on
read and never raise: a miss is ``None``.  Each tier guards its index
mutation with its own lock, and no lock is held across an ``await``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from parkwatch.models.facility import Facility

_logger = logging.getLogger(__name__)

DEFAULT_AREA_TTL: float = 10 * 60
DEFAULT_ENTITY_TTL: float = 60 * 60


@dataclass(frozen=True)
class AreaKey:
    """Composite area key: coordinates rounded to three decimals plus radius."""

    lat: str
    lng: str
    radius: int

    @classmethod
    def from_query(cls, lat: float, lng: float, radius: int) -> AreaKey:
        return cls(lat=f"{lat:.3f}", lng=f"{lng:.3f}", radius=int(radius))


@dataclass(frozen=True)
class AreaSnapshot:
    """One resident area entry with an id index for O(1) lookup."""

    key: AreaKey
    facilities: tuple[Facility, ...]
    captured_at: float
    index: dict[str, Facility] = field(default_factory=dict)


@dataclass(frozen=True)
class _EntityEntry:
    facility: Facility
    captured_at: float


class TieredCache:
    """Area-scoped and entity-scoped facility snapshots with independent TTLs."""

    def __init__(
        self,
        *,
        area_ttl: float = DEFAULT_AREA_TTL,
        entity_ttl: float = DEFAULT_ENTITY_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._area_ttl = area_ttl
        self._entity_ttl = entity_ttl
        self._clock = clock
        self._area: AreaSnapshot | None = None
        self._entities: dict[str, _EntityEntry] = {}
        self._area_lock = threading.Lock()
        self._entity_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Area tier
    # ------------------------------------------------------------------

    def read_area(self, key: AreaKey) -> AreaSnapshot | None:
        """Return the resident snapshot if it matches *key* and is fresh."""
        with self._area_lock:
            snapshot = self._area
        if snapshot is None or snapshot.key != key:
            _logger.debug("Area cache miss key=%s", key)
            return None
        if self._clock() - snapshot.captured_at > self._area_ttl:
            _logger.debug("Area cache expired key=%s", key)
            return None
        _logger.debug("Area cache hit key=%s facilities=%d", key, len(snapshot.facilities))
        return snapshot

    def write_area(self, key: AreaKey, facilities: Iterable[Facility]) -> AreaSnapshot:
        """Replace the resident snapshot and rebuild its id index."""
        items = tuple(facilities)
        snapshot = AreaSnapshot(
            key=key,
            facilities=items,
            captured_at=self._clock(),
            index={facility.id: facility for facility in items},
        )
        with self._area_lock:
            self._area = snapshot
        return snapshot

    def find_in_area(self, facility_id: str) -> Facility | None:
        """Look *facility_id* up in the resident area index.

        The index is consulted regardless of the snapshot's age; callers
        immediately promote hits into the entity tier.
        """
        with self._area_lock:
            snapshot = self._area
        if snapshot is None:
            return None
        return snapshot.index.get(facility_id)

    # ------------------------------------------------------------------
    # Entity tier
    # ------------------------------------------------------------------

    def read_entity(self, facility_id: str) -> Facility | None:
        """Return a fresh single-facility snapshot, evicting it once stale."""
        now = self._clock()
        with self._entity_lock:
            entry = self._entities.get(facility_id)
            if entry is None:
                return None
            if now - entry.captured_at > self._entity_ttl:
                del self._entities[facility_id]
                _logger.debug("Entity cache evicted id=%s", facility_id)
                return None
        return entry.facility

    def write_entity(self, facility_id: str, facility: Facility) -> None:
        entry = _EntityEntry(facility=facility, captured_at=self._clock())
        with self._entity_lock:
            self._entities[facility_id] = entry

    def clear(self) -> None:
        with self._area_lock:
            self._area = None
        with self._entity_lock:
            self._entities.clear()

    def __len__(self) -> int:
        with self._entity_lock:
            return len(self._entities)
