from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from realty_match.core.errors import ExternalServiceError
from realty_match.core.models import EnrichmentRecord
from realty_match.geo.base import NearbySource


LOGGER = logging.getLogger(__name__)

DEFAULT_TTL_DAYS = 7
SEARCH_RADIUS_METERS = 1200

# (minimum amenities, score) checked top-down.
INFRASTRUCTURE_BRACKETS = (
    (10, 10.0),
    (6, 8.0),
    (3, 6.0),
    (1, 4.0),
    (0, 2.0),
)


class EnrichmentCache(Protocol):
    async def get(self, key: str) -> EnrichmentRecord | None: ...

    async def put(self, key: str, record: EnrichmentRecord, ttl_seconds: int) -> None: ...


class InMemoryEnrichmentCache:
    """Process-local cache. Concurrent writers of the same key: last one wins."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._entries: dict[str, tuple[EnrichmentRecord, datetime]] = {}

    async def get(self, key: str) -> EnrichmentRecord | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        record, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return record

    async def put(self, key: str, record: EnrichmentRecord, ttl_seconds: int) -> None:
        self._entries[key] = (record, record.fetched_at + timedelta(seconds=ttl_seconds))

    def __len__(self) -> int:
        return len(self._entries)


class EnrichmentResolver:
    """
    Resolves nearby-amenity data through a fallback chain: fresh cache entry,
    then each source in priority order. Returns None when every hop fails so
    the caller can drop the affected factors.
    """

    def __init__(
        self,
        sources: list[NearbySource],
        cache: EnrichmentCache | None = None,
        ttl_days: int = DEFAULT_TTL_DAYS,
        radius_m: int = SEARCH_RADIUS_METERS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.sources = list(sources)
        self.cache = cache if cache is not None else InMemoryEnrichmentCache(clock=clock)
        self.ttl_seconds = int(ttl_days * 24 * 60 * 60)
        self.radius_m = radius_m
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def enrich(self, lat: float, lng: float, *, listing_id: str | None = None) -> EnrichmentRecord | None:
        key = cache_key(lat, lng, listing_id)
        cached = await self._read_cache(key)
        if cached is not None and cached.age_seconds(self._clock()) < self.ttl_seconds:
            return cached

        for source in self.sources:
            try:
                counts = await source.fetch(lat, lng, self.radius_m)
            except ExternalServiceError as exc:
                LOGGER.warning("Enrichment source=%s failed key=%s error=%s", source.name, key, exc)
                continue
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception("Enrichment source=%s crashed key=%s: %s", source.name, key, exc)
                continue
            if counts is None:
                continue

            record = EnrichmentRecord(
                schools_count=counts.schools_count,
                parks_count=counts.parks_count,
                metro_stations=len(counts.metro_distances_m),
                metro_distance_m=counts.nearest_metro_m,
                source=source.name,
                fetched_at=self._clock(),
            )
            await self._write_cache(key, record)
            return record

        LOGGER.info("No enrichment data available key=%s", key)
        return None

    async def _read_cache(self, key: str) -> EnrichmentRecord | None:
        try:
            return await self.cache.get(key)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Enrichment cache read failed key=%s error=%s", key, exc)
            return None

    async def _write_cache(self, key: str, record: EnrichmentRecord) -> None:
        try:
            await self.cache.put(key, record, self.ttl_seconds)
        except Exception as exc:  # noqa: BLE001
            LOGGER.warning("Enrichment cache write failed key=%s error=%s", key, exc)


def cache_key(lat: float, lng: float, listing_id: str | None = None) -> str:
    if listing_id:
        return f"listing:{listing_id}"
    return f"geo:{lat:.4f},{lng:.4f}"


def school_score(count: int) -> float:
    score = 10.0 if count >= 5 else count * 2.0
    return max(0.0, min(10.0, score))


def park_score(count: int) -> float:
    score = 10.0 if count >= 3 else count * 3.5
    return max(0.0, min(10.0, score))


def metro_score(distance_m: float) -> float:
    if distance_m <= 200:
        return 10.0
    if distance_m >= 1200:
        return 0.0
    score = 10 - (distance_m - 200) / 1000 * 10
    return max(0.0, min(10.0, score))


def infrastructure_score(record: EnrichmentRecord) -> float:
    total = record.schools_count + record.parks_count + record.metro_stations
    for minimum, score in INFRASTRUCTURE_BRACKETS:
        if total >= minimum:
            return score
    return 0.0


def enrichment_breakdown(record: EnrichmentRecord) -> dict[str, float]:
    breakdown = {
        "schools": school_score(record.schools_count),
        "parks": park_score(record.parks_count),
    }
    if record.metro_distance_m is not None:
        breakdown["metro"] = metro_score(record.metro_distance_m)
    return breakdown
