from __future__ import annotations

import argparse
import asyncio
import logging

from realty_match.core.config import Settings, load_settings
from realty_match.core.enrichment import EnrichmentResolver
from realty_match.core.factory import build_http_client, build_resolver
from realty_match.core.models import Listing
from realty_match.core.scoring import has_coordinates
from realty_match.core.supabase_repo import SupabaseEnrichmentCache, SupabaseRepo


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
LOGGER = logging.getLogger(__name__)


async def warm_listings(resolver: EnrichmentResolver, listings: list[Listing]) -> int:
    """Enrich listings one after another; returns how many got data."""
    enriched = 0
    for listing in listings:
        if not has_coordinates(listing):
            continue
        record = await resolver.enrich(listing.lat, listing.lng, listing_id=listing.id)
        if record is not None:
            enriched += 1
    return enriched


async def run_warm_enrichment(settings: Settings, limit: int = 50) -> int:
    if not settings.supabase_enabled:
        LOGGER.warning("Supabase is not configured; nothing to warm.")
        return 0
    repo = SupabaseRepo(settings.supabase_url, settings.supabase_key)
    listings = await asyncio.to_thread(repo.get_recent_listings, limit)
    async with build_http_client(settings) as http:
        resolver = build_resolver(settings, http, cache=SupabaseEnrichmentCache(repo))
        enriched = await warm_listings(resolver, listings)
    LOGGER.info("Enrichment warm-up completed. listings=%s enriched=%s", len(listings), enriched)
    return enriched


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Refresh cached enrichment for recently updated listings.")
    parser.add_argument("--limit", type=int, default=50, help="How many recent listings to refresh.")
    args = parser.parse_args()
    asyncio.run(run_warm_enrichment(load_settings(), limit=args.limit))
