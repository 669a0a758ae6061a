from __future__ import annotations

import hashlib
import json
from datetime import datetime, timedelta, timezone
from typing import Any

from realty_match.core.models import EnrichmentRecord, Listing, MatchResult


def build_listing_hash(listing: Listing) -> str:
    """Stable hash of the listing content, used to skip no-op upserts."""
    stable = {
        "provider": listing.provider,
        "external_id": listing.external_id,
        "title": listing.title,
        "address": listing.address,
        "price": listing.price,
        "rooms": listing.rooms,
        "area": listing.area,
        "photos": listing.photos,
        "description": listing.description,
    }
    serialized = json.dumps(stable, sort_keys=True, ensure_ascii=True, default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def listing_to_record(listing: Listing) -> dict[str, Any]:
    lat = listing.lat if -90 <= float(listing.lat) <= 90 else None
    lng = listing.lng if -180 <= float(listing.lng) <= 180 else None
    return {
        "provider": listing.provider,
        "external_id": listing.external_id,
        "title": listing.title,
        "address": listing.address,
        "district": listing.district,
        "lat": lat,
        "lng": lng,
        "price": listing.price,
        "rooms": listing.rooms,
        "area": listing.area,
        "floor": listing.floor,
        "total_floors": listing.total_floors,
        "year": listing.year,
        "stage": listing.stage,
        "photos": listing.photos,
        "description": listing.description,
        "has_parking": listing.has_parking,
        "is_new_building": listing.is_new_building,
        "developer": listing.developer,
        "deal_type": listing.deal_type,
        "property_type": listing.property_type,
        "url": listing.url,
        "content_hash": build_listing_hash(listing),
        "updated_at": listing.updated_at.isoformat(),
    }


def record_to_listing(row: dict[str, Any]) -> Listing:
    return Listing(
        provider=str(row.get("provider") or ""),
        external_id=str(row.get("external_id") or ""),
        title=row.get("title") or "",
        address=row.get("address") or "",
        lat=float(row.get("lat") or 0.0),
        lng=float(row.get("lng") or 0.0),
        price=float(row.get("price") or 0.0),
        rooms=int(row.get("rooms") or 0),
        area=float(row.get("area") or 0.0),
        floor=int(row.get("floor") or 0),
        total_floors=int(row.get("total_floors") or 0),
        year=row.get("year"),
        stage=row.get("stage"),
        photos=list(row.get("photos") or []),
        description=row.get("description") or "",
        has_parking=bool(row.get("has_parking")),
        is_new_building=bool(row.get("is_new_building")),
        developer=row.get("developer"),
        deal_type=row.get("deal_type") or "sale",
        property_type=row.get("property_type"),
        url=row.get("url"),
        district=row.get("district"),
        updated_at=_parse_dt(row.get("updated_at")),
    )


def match_result_to_record(query_id: str, result: MatchResult, now: datetime | None = None) -> dict[str, Any]:
    created_at = now or datetime.now(timezone.utc)
    return {
        "query_id": query_id,
        "listing_id": result.listing_id,
        "match_score": round(result.match_score, 4),
        "breakdown": {factor: round(score, 4) for factor, score in result.breakdown.items()},
        "explanation": result.explanation,
        "created_at": created_at.isoformat(),
    }


def enrichment_to_record(key: str, record: EnrichmentRecord, ttl_seconds: int) -> dict[str, Any]:
    return {
        "cache_key": key,
        "schools_count": record.schools_count,
        "parks_count": record.parks_count,
        "metro_stations": record.metro_stations,
        "metro_distance_m": record.metro_distance_m,
        "source": record.source,
        "fetched_at": record.fetched_at.isoformat(),
        "expires_at": (record.fetched_at + timedelta(seconds=ttl_seconds)).isoformat(),
    }


def record_to_enrichment(row: dict[str, Any]) -> EnrichmentRecord:
    distance = row.get("metro_distance_m")
    return EnrichmentRecord(
        schools_count=int(row.get("schools_count") or 0),
        parks_count=int(row.get("parks_count") or 0),
        metro_stations=int(row.get("metro_stations") or 0),
        metro_distance_m=float(distance) if distance is not None else None,
        source=str(row.get("source") or ""),
        fetched_at=_parse_dt(row.get("fetched_at")),
    )


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed
    return datetime(1970, 1, 1, tzinfo=timezone.utc)
