from __future__ import annotations

from math import asin, cos, radians, sin, sqrt
from typing import Iterable, Mapping

from realty_match.core.enrichment import enrichment_breakdown, infrastructure_score
from realty_match.core.models import CommutePoint, EnrichmentRecord, Listing, MatchBreakdown, Query


NEUTRAL_SCORE = 7.0
TRAVEL_SPEED_KMH = {
    "car": 30.0,
    "public": 25.0,
    "walk": 5.0,
}
BEST_TRAVEL_MINUTES = 15.0
WORST_TRAVEL_MINUTES = 90.0

CONSTRUCTION_STAGE_SCORES = {
    "pit": 3.0,
    "foundation": 4.0,
    "frame": 5.0,
    "facade": 7.0,
    "finishing": 8.0,
    "ready": 10.0,
}
# Partner feeds send the stage in Russian.
STAGE_ALIASES = {
    "котлован": "pit",
    "фундамент": "foundation",
    "каркас": "frame",
    "фасад": "facade",
    "отделка": "finishing",
    "сдан": "ready",
}
UNKNOWN_STAGE_SCORE = 5.0

ENRICHMENT_FACTORS = frozenset({"schools", "parks", "metro", "infrastructure"})


def haversine_distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    r = 6_371_000.0
    dlat = radians(lat2 - lat1)
    dlng = radians(lng2 - lng1)
    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlng / 2) ** 2
    return 2 * r * asin(sqrt(a))


def normalize_score(value: float, low: float, high: float, inverse: bool = False) -> float:
    if low == high:
        return 5.0
    fraction = (value - low) / (high - low)
    score = 1 - fraction if inverse else fraction
    return max(0.0, min(10.0, score * 10))


def estimate_travel_minutes(distance_km: float, mode: str = "public") -> float:
    speed = TRAVEL_SPEED_KMH.get(mode, TRAVEL_SPEED_KMH["public"])
    return distance_km / speed * 60


def price_score(price: float, budget_min: float | None = None, budget_max: float | None = None) -> float:
    if not budget_min and not budget_max:
        return NEUTRAL_SCORE
    if budget_min and price < budget_min:
        # Suspiciously cheap: ramp up from 70% of the minimum.
        return normalize_score(price, budget_min * 0.7, budget_min)
    if budget_max and price > budget_max:
        return normalize_score(price, budget_max, budget_max * 1.3, inverse=True)
    return 10.0


def transport_score(lat: float, lng: float, commute_points: Iterable[CommutePoint], mode: str = "public") -> float:
    weighted_sum = 0.0
    total_importance = 0.0
    for point in commute_points:
        distance_km = haversine_distance_meters(lat, lng, point.lat, point.lng) / 1000.0
        minutes = estimate_travel_minutes(distance_km, mode)
        score = normalize_score(minutes, BEST_TRAVEL_MINUTES, WORST_TRAVEL_MINUTES, inverse=True)
        weighted_sum += score * point.importance
        total_importance += point.importance
    if total_importance <= 0:
        return NEUTRAL_SCORE
    return weighted_sum / total_importance


def parking_score(has_parking: bool, parking_required: bool) -> float:
    if has_parking:
        return 10.0
    return 0.0 if parking_required else 5.0


def liquidity_score(listing: Listing) -> float:
    return 8.0 if listing.is_new_building else 6.0


def construction_stage_score(stage: str | None) -> float | None:
    if not stage:
        return None
    key = stage.strip().lower()
    key = STAGE_ALIASES.get(key, key)
    return CONSTRUCTION_STAGE_SCORES.get(key, UNKNOWN_STAGE_SCORE)


def has_coordinates(listing: Listing) -> bool:
    return bool(listing.lat or listing.lng)


def needs_enrichment(weights: Mapping[str, float]) -> bool:
    return any(weights.get(factor) for factor in ENRICHMENT_FACTORS)


def score_listing(listing: Listing, enrichment: EnrichmentRecord | None, query: Query) -> MatchBreakdown:
    """
    Per-factor 0-10 scores for every factor the query weights. Factors without
    data (no enrichment, no stage, no commute points, no known source) are left
    out so the weighted average ignores them.
    """
    weights = query.weights
    breakdown: MatchBreakdown = {}

    # A 0 price or 0,0 position is the placeholder for a field the source did not send.
    if weights.get("price") and listing.price > 0:
        breakdown["price"] = price_score(listing.price, query.budget.min, query.budget.max)

    if weights.get("transport") and query.commute_points and has_coordinates(listing):
        breakdown["transport"] = transport_score(
            listing.lat, listing.lng, query.commute_points, query.transport_mode
        )

    if weights.get("parking"):
        breakdown["parking"] = parking_score(listing.has_parking, query.parking_required)

    if enrichment is not None:
        for factor, score in enrichment_breakdown(enrichment).items():
            if weights.get(factor):
                breakdown[factor] = score
        if weights.get("infrastructure"):
            breakdown["infrastructure"] = infrastructure_score(enrichment)

    if weights.get("liquidity"):
        breakdown["liquidity"] = liquidity_score(listing)

    if weights.get("constructionStage"):
        stage = construction_stage_score(listing.stage)
        if stage is not None:
            breakdown["constructionStage"] = stage

    return breakdown


def weighted_score(weights: Mapping[str, float], breakdown: Mapping[str, float]) -> float:
    total_weight = 0.0
    weighted_sum = 0.0
    for factor, weight in weights.items():
        if not weight or factor not in breakdown:
            continue
        total_weight += weight
        weighted_sum += weight * breakdown[factor]
    if total_weight == 0:
        return 0.0
    return weighted_sum / total_weight
