from __future__ import annotations

import asyncio
from typing import Any

from realty_match.core.http import RetryingHttpClient
from realty_match.core.scoring import haversine_distance_meters
from realty_match.geo.base import NearbyCounts, NearbySource


DGIS_ITEMS_URL = "https://catalog.api.2gis.com/3.0/items"

RUBRIC_SCHOOLS = "156"
RUBRIC_PARKS = "161"
RUBRIC_METRO = "189"


class DgisSource(NearbySource):
    name = "dgis"

    def __init__(
        self,
        http: RetryingHttpClient,
        api_key: str | None,
        base_url: str = DGIS_ITEMS_URL,
        timeout_seconds: float = 15.0,
    ) -> None:
        self.http = http
        self.api_key = api_key
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds

    async def fetch(self, lat: float, lng: float, radius_m: int) -> NearbyCounts | None:
        if not self.api_key:
            return None

        schools, parks, metro = await asyncio.gather(
            self._search_rubric(RUBRIC_SCHOOLS, lat, lng, radius_m),
            self._search_rubric(RUBRIC_PARKS, lat, lng, radius_m),
            self._search_rubric(RUBRIC_METRO, lat, lng, radius_m),
        )

        distances: list[float] = []
        for item in metro:
            point = item.get("point") if isinstance(item.get("point"), dict) else None
            if not point:
                continue
            try:
                distances.append(haversine_distance_meters(lat, lng, float(point["lat"]), float(point["lon"])))
            except (KeyError, TypeError, ValueError):
                continue

        return NearbyCounts(
            schools_count=len(schools),
            parks_count=len(parks),
            metro_distances_m=distances,
        )

    async def _search_rubric(
        self, rubric_id: str, lat: float, lng: float, radius_m: int, page_size: int = 50
    ) -> list[dict[str, Any]]:
        payload = await self.http.get(
            self.base_url,
            params={
                "key": self.api_key,
                "lat": lat,
                "lon": lng,
                "radius": radius_m,
                "rubric_id": rubric_id,
                "page_size": page_size,
                "fields": "items.point",
            },
            timeout=self.timeout_seconds,
        )
        result = payload.get("result") if isinstance(payload, dict) else None
        items = result.get("items") if isinstance(result, dict) else None
        return [item for item in items or [] if isinstance(item, dict)]
