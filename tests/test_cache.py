from __future__ import annotations

from conftest import FakeMonotonic, make_facility
from parkwatch._cache import AreaKey, TieredCache


def _cache(clock: FakeMonotonic) -> TieredCache:
    return TieredCache(area_ttl=600, entity_ttl=3600, clock=clock)


def test_area_key_rounds_coordinates_to_three_decimals() -> None:
    assert AreaKey.from_query(33.42421, -111.92809, 5000) == AreaKey.from_query(33.4242, -111.9281, 5000)
    assert AreaKey.from_query(33.4242, -111.9281, 5000) != AreaKey.from_query(33.4242, -111.9281, 4000)


def test_area_hit_within_ttl(monotonic: FakeMonotonic) -> None:
    cache = _cache(monotonic)
    key = AreaKey.from_query(33.4242, -111.9281, 5000)
    cache.write_area(key, [make_facility("osm-1"), make_facility("osm-2")])

    monotonic.advance(600)
    snapshot = cache.read_area(key)

    assert snapshot is not None
    assert [f.id for f in snapshot.facilities] == ["osm-1", "osm-2"]


def test_area_expires_lazily_after_ttl(monotonic: FakeMonotonic) -> None:
    cache = _cache(monotonic)
    key = AreaKey.from_query(33.4242, -111.9281, 5000)
    cache.write_area(key, [make_facility("osm-1")])

    monotonic.advance(601)

    assert cache.read_area(key) is None


def test_area_tier_holds_one_snapshot(monotonic: FakeMonotonic) -> None:
    cache = _cache(monotonic)
    first = AreaKey.from_query(33.0, -111.0, 5000)
    second = AreaKey.from_query(34.0, -112.0, 5000)
    cache.write_area(first, [make_facility("osm-1")])
    cache.write_area(second, [make_facility("osm-2")])

    assert cache.read_area(first) is None
    assert cache.read_area(second) is not None
    assert cache.find_in_area("osm-1") is None
    assert cache.find_in_area("osm-2") is not None


def test_empty_area_is_cached(monotonic: FakeMonotonic) -> None:
    cache = _cache(monotonic)
    key = AreaKey.from_query(0.0, 0.0, 100)
    cache.write_area(key, [])

    snapshot = cache.read_area(key)

    assert snapshot is not None
    assert snapshot.facilities == ()


def test_area_index_ignores_snapshot_age(monotonic: FakeMonotonic) -> None:
    cache = _cache(monotonic)
    cache.write_area(AreaKey.from_query(1.0, 1.0, 1), [make_facility("osm-7")])

    monotonic.advance(10_000)

    assert cache.find_in_area("osm-7") is not None


def test_entity_tier_evicts_when_stale(monotonic: FakeMonotonic) -> None:
    cache = _cache(monotonic)
    cache.write_entity("osm-1", make_facility("osm-1"))

    monotonic.advance(3600)
    assert cache.read_entity("osm-1") is not None
    assert len(cache) == 1

    monotonic.advance(1)
    assert cache.read_entity("osm-1") is None
    assert len(cache) == 0


def test_clear_drops_both_tiers(monotonic: FakeMonotonic) -> None:
    cache = _cache(monotonic)
    key = AreaKey.from_query(1.0, 1.0, 1)
    cache.write_area(key, [make_facility("osm-1")])
    cache.write_entity("osm-1", make_facility("osm-1"))

    cache.clear()

    assert cache.read_area(key) is None
    assert cache.read_entity("osm-1") is None
