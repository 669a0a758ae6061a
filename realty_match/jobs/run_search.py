from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from realty_match.core.config import Settings, load_settings
from realty_match.core.enrichment import EnrichmentCache
from realty_match.core.factory import build_assembler, build_http_client
from realty_match.core.models import MatchResult, query_from_dict
from realty_match.core.supabase_repo import SupabaseEnrichmentCache, SupabaseRepo


logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
LOGGER = logging.getLogger(__name__)


async def run_search(
    settings: Settings,
    payload: dict[str, Any],
    top_n: int = 10,
    save: bool = False,
    query_id: str | None = None,
) -> list[MatchResult]:
    query = query_from_dict(payload)
    repo = SupabaseRepo(settings.supabase_url, settings.supabase_key) if settings.supabase_enabled else None
    cache: EnrichmentCache | None = SupabaseEnrichmentCache(repo) if repo else None

    async with build_http_client(settings) as http:
        assembler = build_assembler(settings, http, cache=cache, top_n=top_n)
        results = await assembler.recommend(query)

    LOGGER.info("Search completed. results=%s", len(results))
    if save:
        if repo is None:
            LOGGER.warning("--save requested but Supabase is not configured; skipping persistence.")
        else:
            repo.upsert_listings([result.listing for result in results])
            repo.save_match_results(query_id or str(payload.get("id") or "adhoc"), results)
    return results


def results_to_json(results: list[MatchResult]) -> list[dict[str, Any]]:
    return [
        {
            "listing_id": result.listing_id,
            "title": result.listing.title,
            "address": result.listing.address,
            "price": result.listing.price,
            "url": result.listing.url,
            "match_score": round(result.match_score, 2),
            "breakdown": {factor: round(score, 2) for factor, score in result.breakdown.items()},
            "explanation": result.explanation,
        }
        for result in results
    ]


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rank listings against a preference query.")
    parser.add_argument("--query", required=True, type=Path, help="Path to the query JSON payload.")
    parser.add_argument("--top", type=int, default=10, help="Number of results to keep.")
    parser.add_argument("--save", action="store_true", help="Persist listings and match results to Supabase.")
    parser.add_argument("--query-id", default=None, help="Id the results are stored under.")
    args = parser.parse_args()

    loaded_settings = load_settings()
    query_payload = json.loads(args.query.read_text(encoding="utf-8"))
    matches = asyncio.run(
        run_search(loaded_settings, query_payload, top_n=args.top, save=args.save, query_id=args.query_id)
    )
    print(json.dumps(results_to_json(matches), ensure_ascii=False, indent=2))
