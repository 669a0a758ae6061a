from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping


DEAL_TYPES = ("sale", "rent")
PROPERTY_TYPES = ("new", "secondary", "any")
TRANSPORT_MODES = ("car", "public", "walk")

MatchBreakdown = dict[str, float]


@dataclass(frozen=True, slots=True)
class CommutePoint:
    name: str
    lat: float
    lng: float
    importance: float = 1.0


@dataclass(frozen=True, slots=True)
class Budget:
    min: float | None = None
    max: float | None = None


@dataclass(frozen=True, slots=True)
class RentFilters:
    deposit_max: float | None = None
    period: str | None = None  # long | short
    furnished: bool | None = None
    pets_allowed: bool | None = None
    utilities_included: bool | None = None


@dataclass(frozen=True, slots=True)
class Query:
    budget: Budget = field(default_factory=Budget)
    city: str = ""
    districts: tuple[str, ...] = ()
    commute_points: tuple[CommutePoint, ...] = ()
    transport_mode: str = "public"
    rooms: tuple[int, ...] = ()
    area_min: float | None = None
    area_max: float | None = None
    new_building: bool | None = None
    parking_required: bool = False
    deal_type: str = "sale"  # sale | rent
    property_type: str = "any"  # new | secondary | any
    mode: str = "life"  # life | invest
    weights: Mapping[str, float] = field(default_factory=dict)
    rent_filters: RentFilters | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "weights", MappingProxyType(dict(self.weights)))


@dataclass(slots=True)
class Listing:
    provider: str
    external_id: str
    title: str
    address: str
    lat: float
    lng: float
    price: float
    rooms: int
    area: float
    floor: int = 0
    total_floors: int = 0
    year: int | None = None
    stage: str | None = None  # new builds only
    photos: list[str] = field(default_factory=list)
    description: str = ""
    has_parking: bool = False
    is_new_building: bool = False
    developer: str | None = None
    deal_type: str = "sale"
    property_type: str | None = None
    url: str | None = None
    district: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def id(self) -> str:
        return f"{self.provider}:{self.external_id}"

    @property
    def identity(self) -> tuple[str, str]:
        return (self.provider, self.external_id)


@dataclass(frozen=True, slots=True)
class EnrichmentRecord:
    schools_count: int
    parks_count: int
    metro_stations: int
    metro_distance_m: float | None = None
    source: str = ""
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def age_seconds(self, now: datetime | None = None) -> float:
        current = now or datetime.now(timezone.utc)
        return (current - self.fetched_at).total_seconds()


@dataclass(frozen=True, slots=True)
class MatchResult:
    listing_id: str
    listing: Listing
    match_score: float
    breakdown: MatchBreakdown
    explanation: str


def query_from_dict(payload: dict[str, Any]) -> Query:
    """
    Build a Query from the preference payload produced by the chat flow.
    Accepts both snake_case and camelCase keys.
    """
    budget_raw = payload.get("budget") or {}
    budget = Budget(
        min=_opt_float(budget_raw.get("min", payload.get("budget_min", payload.get("budgetMin")))),
        max=_opt_float(budget_raw.get("max", payload.get("budget_max", payload.get("budgetMax")))),
    )

    geo = payload.get("geo") or {}
    raw_points = geo.get("commute_points", geo.get("commutePoints", payload.get("commute_points"))) or []
    points: list[CommutePoint] = []
    for raw in raw_points:
        if not isinstance(raw, dict):
            continue
        lat = _opt_float(raw.get("lat"))
        lng = _opt_float(raw.get("lng"))
        if lat is None or lng is None:
            continue
        importance = _opt_float(raw.get("importance", raw.get("timeImportance")))
        points.append(
            CommutePoint(
                name=str(raw.get("name") or ""),
                lat=lat,
                lng=lng,
                importance=importance if importance is not None else 1.0,
            )
        )

    filters = payload.get("filters") or {}
    rent_raw = payload.get("rent") or {}
    rent_filters = None
    if rent_raw or any(key in filters for key in ("rentDepositMax", "rentPeriod", "furnished", "petsAllowed")):
        rent_filters = RentFilters(
            deposit_max=_opt_float(rent_raw.get("deposit_max", filters.get("rentDepositMax"))),
            period=rent_raw.get("period", filters.get("rentPeriod")),
            furnished=rent_raw.get("furnished", filters.get("furnished")),
            pets_allowed=rent_raw.get("pets_allowed", filters.get("petsAllowed")),
            utilities_included=rent_raw.get("utilities_included", filters.get("utilitiesIncluded")),
        )

    weights = {
        str(key): float(value)
        for key, value in (payload.get("weights") or {}).items()
        if _opt_float(value) is not None
    }

    deal_type = str(payload.get("deal_type", payload.get("dealType")) or "sale")
    if deal_type not in DEAL_TYPES:
        raise ValueError(f"Unsupported deal type: {deal_type}")
    property_type = str(
        payload.get("property_type", payload.get("propertyType", filters.get("propertyType"))) or "any"
    )
    if property_type not in PROPERTY_TYPES:
        raise ValueError(f"Unsupported property type: {property_type}")
    transport_mode = str(payload.get("transport_mode", payload.get("transportMode")) or "public")
    if transport_mode not in TRANSPORT_MODES:
        raise ValueError(f"Unsupported transport mode: {transport_mode}")

    return Query(
        budget=budget,
        city=str(geo.get("city") or payload.get("city") or ""),
        districts=tuple(geo.get("districts") or payload.get("districts") or ()),
        commute_points=tuple(points),
        transport_mode=transport_mode,
        rooms=tuple(int(r) for r in (filters.get("rooms") or payload.get("rooms") or ())),
        area_min=_opt_float(filters.get("area_min", filters.get("areaMin"))),
        area_max=_opt_float(filters.get("area_max", filters.get("areaMax"))),
        new_building=filters.get("new_building", filters.get("newBuilding")),
        parking_required=bool(filters.get("parking_required", filters.get("parking")) or False),
        deal_type=deal_type,
        property_type=property_type,
        mode=str(payload.get("mode") or "life"),
        weights=weights,
        rent_filters=rent_filters,
    )


def _opt_float(value: Any) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None
