from __future__ import annotations

from typing import Any

from realty_match.core.config import DEFAULT_OVERPASS_URL
from realty_match.core.http import RetryingHttpClient
from realty_match.core.scoring import haversine_distance_meters
from realty_match.geo.base import NearbyCounts, NearbySource


class OverpassSource(NearbySource):
    """OpenStreetMap open data. Needs no key, so it is the last resort."""

    name = "overpass"

    def __init__(
        self,
        http: RetryingHttpClient,
        base_url: str = DEFAULT_OVERPASS_URL,
        timeout_seconds: float = 15.0,
    ) -> None:
        self.http = http
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds

    async def fetch(self, lat: float, lng: float, radius_m: int) -> NearbyCounts | None:
        payload = await self.http.post(
            self.base_url,
            content=build_overpass_query(lat, lng, radius_m),
            headers={"Content-Type": "text/plain"},
            timeout=self.timeout_seconds,
        )
        if not isinstance(payload, dict) or not isinstance(payload.get("elements"), list):
            return None
        return count_elements(payload["elements"], lat, lng)


def build_overpass_query(lat: float, lng: float, radius_m: int) -> str:
    around = f"(around:{radius_m},{lat},{lng})"
    return (
        "[out:json][timeout:25];\n"
        "(\n"
        f'  node["amenity"="school"]{around};\n'
        f'  way["leisure"="park"]{around};\n'
        f'  relation["leisure"="park"]{around};\n'
        f'  node["railway"="station"]["station"="subway"]{around};\n'
        f'  node["public_transport"="station"]["subway"="yes"]{around};\n'
        ");\n"
        "out center;"
    )


def count_elements(elements: list[Any], lat: float, lng: float) -> NearbyCounts:
    schools = 0
    parks = 0
    distances: list[float] = []
    for element in elements:
        if not isinstance(element, dict):
            continue
        tags = element.get("tags") if isinstance(element.get("tags"), dict) else {}
        if tags.get("amenity") == "school":
            schools += 1
        elif tags.get("leisure") == "park":
            parks += 1
        elif _is_subway_station(tags):
            point = _element_point(element)
            if point is not None:
                distances.append(haversine_distance_meters(lat, lng, point[0], point[1]))
    return NearbyCounts(schools_count=schools, parks_count=parks, metro_distances_m=distances)


def _is_subway_station(tags: dict[str, Any]) -> bool:
    if tags.get("railway") == "station" and tags.get("station") == "subway":
        return True
    return tags.get("public_transport") == "station" and tags.get("subway") == "yes"


def _element_point(element: dict[str, Any]) -> tuple[float, float] | None:
    center = element.get("center") if isinstance(element.get("center"), dict) else {}
    raw_lat = element.get("lat", center.get("lat"))
    raw_lng = element.get("lon", center.get("lon"))
    try:
        return float(raw_lat), float(raw_lng)
    except (TypeError, ValueError):
        return None
