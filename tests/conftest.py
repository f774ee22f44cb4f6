from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from parkwatch.exceptions import UpstreamUnavailableError
from parkwatch.models.facility import Facility, Location

#: Monday 2026-01-05 10:00 UTC.
NOW = datetime(2026, 1, 5, 10, 0, tzinfo=UTC)


class FakeMonotonic:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeWallClock:
    """Manually advanced wall clock returning aware UTC datetimes."""

    def __init__(self, start: datetime = NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class FakeTransport:
    """Query transport double returning canned Overpass payloads."""

    elements: list[dict[str, Any]] = field(default_factory=list)
    by_id: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    fail: bool = False
    queries: list[str] = field(default_factory=list)

    async def fetch(
        self,
        query: str,
        *,
        attempts: int | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        self.queries.append(query)
        if self.fail:
            raise UpstreamUnavailableError("all mirrors down", attempts=3)
        for raw_id, elements in self.by_id.items():
            if f"node(id:{raw_id})" in query:
                return {"elements": elements}
        if "(id:" in query:
            return {"elements": []}
        return {"elements": self.elements}


@dataclass
class RecordingBroadcaster:
    calls: list[tuple[str, dict[str, Any], str | None]] = field(default_factory=list)

    async def broadcast(
        self,
        event: str,
        payload: dict[str, Any],
        *,
        facility_id: str | None = None,
    ) -> None:
        self.calls.append((event, payload, facility_id))


def make_facility(
    facility_id: str = "lot-a",
    *,
    total: int = 150,
    available: int = 45,
    name: str | None = None,
) -> Facility:
    return Facility(
        id=facility_id,
        name=name or f"Lot {facility_id}",
        total_spots=total,
        available_spots=available,
        location=Location(lat=33.4242, lng=-111.9281),
        last_update=NOW - timedelta(minutes=5),
    )


def osm_element(element_id: int, **tags: Any) -> dict[str, Any]:
    return {
        "type": "way",
        "id": element_id,
        "center": {"lat": 33.42 + element_id / 10_000, "lon": -111.93},
        "tags": {"amenity": "parking", **tags},
    }


@pytest.fixture
def wall_clock() -> FakeWallClock:
    return FakeWallClock()


@pytest.fixture
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()
