from __future__ import annotations

import asyncio
from typing import Any

from realty_match.core.http import RetryingHttpClient
from realty_match.core.scoring import haversine_distance_meters
from realty_match.geo.base import NearbyCounts, NearbySource


YANDEX_SEARCH_URL = "https://search-maps.yandex.ru/v1/"


class YandexMapsSource(NearbySource):
    name = "yandex_maps"

    def __init__(
        self,
        http: RetryingHttpClient,
        api_key: str | None,
        base_url: str = YANDEX_SEARCH_URL,
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
            self._search("школа", lat, lng, radius_m, results=200),
            self._search("парк", lat, lng, radius_m, results=200),
            self._search("метро", lat, lng, radius_m, results=50),
        )

        distances: list[float] = []
        for feature in metro:
            point = _feature_point(feature)
            if point is not None:
                distances.append(haversine_distance_meters(lat, lng, point[0], point[1]))

        return NearbyCounts(
            schools_count=len(schools),
            parks_count=len(parks),
            metro_distances_m=distances,
        )

    async def _search(self, text: str, lat: float, lng: float, radius_m: int, results: int) -> list[dict[str, Any]]:
        span = radius_m / 1000
        payload = await self.http.get(
            self.base_url,
            params={
                "text": text,
                "ll": f"{lng},{lat}",
                "spn": f"{span},{span}",
                "type": "biz",
                "results": results,
                "apikey": self.api_key,
            },
            timeout=self.timeout_seconds,
        )
        features = payload.get("features") if isinstance(payload, dict) else None
        return [item for item in features or [] if isinstance(item, dict)]


def _feature_point(feature: dict[str, Any]) -> tuple[float, float] | None:
    geometry = feature.get("geometry") if isinstance(feature.get("geometry"), dict) else {}
    coordinates = geometry.get("coordinates")
    if not isinstance(coordinates, list) or len(coordinates) < 2:
        return None
    try:
        # GeoJSON order is (lng, lat).
        return float(coordinates[1]), float(coordinates[0])
    except (TypeError, ValueError):
        return None
