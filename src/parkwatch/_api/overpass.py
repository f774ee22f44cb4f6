"""Overpass query builders and element fetchers."""

from __future__ import annotations

import logging
from typing import Any

from parkwatch._constants import OSM_PREFIX, OVERPASS_QUERY_TIMEOUT
from parkwatch._transport import QueryTransport

_logger = logging.getLogger(__name__)


def to_osm_id(facility_id: str | int) -> str:
    """Normalize ``123`` or ``"osm-123"`` to ``"osm-123"``."""
    text = str(facility_id).strip()
    return text if text.startswith(OSM_PREFIX) else f"{OSM_PREFIX}{text}"


def is_osm_id(facility_id: str) -> bool:
    """Whether *facility_id* refers to an upstream OpenStreetMap element."""
    text = str(facility_id).strip()
    return text.startswith(OSM_PREFIX) or text.isdigit()


def _raw_osm_id(facility_id: str | int) -> str:
    text = to_osm_id(facility_id)[len(OSM_PREFIX) :]
    if not text.isdigit():
        raise ValueError(f"Not an OpenStreetMap element id: {facility_id!r}")
    return text


def build_area_query(lat: float, lng: float, radius: int) -> str:
    """Select every parking node/way/relation within *radius* metres."""
    around = f"around:{int(radius)},{lat},{lng}"
    return (
        f"[out:json][timeout:{OVERPASS_QUERY_TIMEOUT}];\n"
        "(\n"
        f'  node["amenity"="parking"]({around});\n'
        f'  way["amenity"="parking"]({around});\n'
        f'  relation["amenity"="parking"]({around});\n'
        ");\n"
        "out center;\n"
    )


def build_id_query(facility_id: str | int) -> str:
    """Select the element with the given id, whatever its type."""
    raw = _raw_osm_id(facility_id)
    return (
        f"[out:json][timeout:{OVERPASS_QUERY_TIMEOUT}];\n"
        "(\n"
        f"  node(id:{raw});\n"
        f"  way(id:{raw});\n"
        f"  relation(id:{raw});\n"
        ");\n"
        "out center;\n"
    )


def _extract_elements(payload: dict[str, Any]) -> list[dict[str, Any]]:
    elements = payload.get("elements")
    if not isinstance(elements, list):
        return []
    return [el for el in elements if isinstance(el, dict)]


async def fetch_area_elements(
    transport: QueryTransport,
    lat: float,
    lng: float,
    radius: int,
) -> list[dict[str, Any]]:
    """Fetch raw parking elements around a point."""
    payload = await transport.fetch(build_area_query(lat, lng, radius))
    elements = _extract_elements(payload)
    _logger.debug("Overpass area query lat=%s lng=%s radius=%s -> %d elements", lat, lng, radius, len(elements))
    return elements


async def fetch_id_elements(transport: QueryTransport, facility_id: str | int) -> list[dict[str, Any]]:
    """Fetch raw elements for a single upstream id."""
    payload = await transport.fetch(build_id_query(facility_id))
    return _extract_elements(payload)
