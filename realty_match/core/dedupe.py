from __future__ import annotations

import re
import unicodedata
from typing import Any

from realty_match.core.models import Listing


# 1/200 of a degree is roughly 500m of latitude.
GEO_BUCKET_STEPS_PER_DEGREE = 200
_PUNCTUATION_RE = re.compile(r"[^\w\s]", flags=re.UNICODE)


def deduplicate_listings(listings: list[Listing]) -> list[Listing]:
    """
    Collapse the same property re-posted across sources.

    Exact identity repeats (provider, external_id) are dropped first. The rest
    are grouped by geo bucket and address signature; each group keeps the
    listing with the highest quality score, the first seen winning ties.
    Survivors come back in first-seen order, so running this twice is a no-op.
    """
    unique = _drop_identity_repeats(listings)

    survivors: dict[tuple[tuple[float, float], str], tuple[int, Listing]] = {}
    for position, listing in enumerate(unique):
        key = (geo_bucket_key(listing), address_signature(listing))
        existing = survivors.get(key)
        if existing is None:
            survivors[key] = (position, listing)
            continue
        first_position, current = existing
        if quality_score(listing) > quality_score(current):
            # Keep the group's first-seen slot so ordering stays stable.
            survivors[key] = (first_position, listing)

    return [listing for _, listing in sorted(survivors.values(), key=lambda item: item[0])]


def geo_bucket_key(listing: Listing) -> tuple[float, float]:
    lat = round((listing.lat or 0.0) * GEO_BUCKET_STEPS_PER_DEGREE) / GEO_BUCKET_STEPS_PER_DEGREE
    lng = round((listing.lng or 0.0) * GEO_BUCKET_STEPS_PER_DEGREE) / GEO_BUCKET_STEPS_PER_DEGREE
    return (lat, lng)


def address_signature(listing: Listing) -> str:
    address = normalize_text(listing.address)
    title = normalize_text(listing.title)
    rooms = int(listing.rooms or 0)
    area = round(listing.area or 0.0)
    return f"{address}|{title}|{rooms}|{area}"


def content_signature(listing: Listing) -> tuple[Any, ...]:
    """Cross-provider duplicate key. Never used as identity."""
    lat, lng = geo_bucket_key(listing)
    return (
        lat,
        lng,
        normalize_text(listing.address),
        normalize_text(listing.title),
        int(listing.rooms or 0),
        round(listing.area or 0.0),
    )


def quality_score(listing: Listing) -> float:
    photos_score = len(listing.photos or []) * 0.5
    description_score = 1.2 if (listing.description or "").strip() else 0.0
    price_score = 100_000_000 / listing.price if listing.price and listing.price > 0 else 0.0
    return photos_score + description_score + price_score


def normalize_text(value: Any) -> str:
    if not isinstance(value, str):
        return ""
    normalized = unicodedata.normalize("NFKD", value.strip().lower())
    folded = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    without_punctuation = _PUNCTUATION_RE.sub(" ", folded)
    return " ".join(without_punctuation.split())


def _drop_identity_repeats(listings: list[Listing]) -> list[Listing]:
    seen: set[tuple[str, str]] = set()
    out: list[Listing] = []
    for listing in listings:
        if listing.identity in seen:
            continue
        seen.add(listing.identity)
        out.append(listing)
    return out
