from __future__ import annotations

import pytest

from conftest import FakeTransport, osm_element
from parkwatch._api.overpass import (
    build_area_query,
    build_id_query,
    fetch_area_elements,
    fetch_id_elements,
    is_osm_id,
    to_osm_id,
)


def test_to_osm_id_is_idempotent() -> None:
    assert to_osm_id(123) == "osm-123"
    assert to_osm_id("123") == "osm-123"
    assert to_osm_id("osm-123") == "osm-123"


@pytest.mark.parametrize(
    ("value", "expected"),
    [("osm-42", True), ("42", True), ("lot-a", False), ("a1b2c3", False)],
)
def test_is_osm_id(value: str, expected: bool) -> None:
    assert is_osm_id(value) is expected


def test_area_query_selects_all_element_types_with_center_output() -> None:
    query = build_area_query(33.4242, -111.9281, 5000)

    assert query.startswith("[out:json]")
    for kind in ("node", "way", "relation"):
        assert f'{kind}["amenity"="parking"](around:5000,33.4242,-111.9281);' in query
    assert "out center;" in query


def test_id_query_strips_prefix() -> None:
    query = build_id_query("osm-987")

    assert "node(id:987);" in query
    assert "way(id:987);" in query
    assert "relation(id:987);" in query


def test_id_query_rejects_local_ids() -> None:
    with pytest.raises(ValueError):
        build_id_query("lot-a")


@pytest.mark.asyncio
async def test_fetch_area_elements_drops_non_dict_entries() -> None:
    transport = FakeTransport(elements=[osm_element(1), "junk", osm_element(2)])  # type: ignore[list-item]

    elements = await fetch_area_elements(transport, 33.4, -111.9, 1000)

    assert [el["id"] for el in elements] == [1, 2]
    assert "around:1000,33.4,-111.9" in transport.queries[0]


@pytest.mark.asyncio
async def test_fetch_id_elements_handles_missing_elements_key() -> None:
    class _Empty:
        async def fetch(self, query: str, **_: object) -> dict[str, object]:
            return {"remark": "runtime error"}

    assert await fetch_id_elements(_Empty(), "osm-5") == []  # type: ignore[arg-type]
