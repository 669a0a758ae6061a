from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from realty_match.core.enrichment import EnrichmentResolver
from realty_match.core.explain import RuleBasedExplainer
from realty_match.core.models import EnrichmentRecord, Listing, MatchResult, Query
from realty_match.core.scoring import has_coordinates, needs_enrichment, score_listing, weighted_score
from realty_match.providers.base import ListingProvider


LOGGER = logging.getLogger(__name__)

DEFAULT_TOP_N = 10


class Explainer(Protocol):
    async def explain(self, listing: Listing, breakdown: dict[str, float], query: Query) -> str: ...


class MatchResultStore(Protocol):
    def save_match_results(self, query_id: str, results: list[MatchResult]) -> None: ...


class RecommendationAssembler:
    def __init__(
        self,
        provider: ListingProvider,
        resolver: EnrichmentResolver | None = None,
        explainer: Explainer | None = None,
        top_n: int = DEFAULT_TOP_N,
    ) -> None:
        self.provider = provider
        self.resolver = resolver
        self.explainer = explainer or RuleBasedExplainer()
        self.top_n = top_n

    async def recommend(self, query: Query) -> list[MatchResult]:
        """
        Search, enrich, score and explain; best matches first. Ties keep the
        order the listings came back in. Upstream outages only shrink the
        result, they never raise.
        """
        listings = await self.provider.search(query)
        if not listings:
            LOGGER.info("No candidate listings for query.")
            return []

        enrichments = await self._enrich_all(listings, query)

        scored: list[tuple[float, int, Listing, dict[str, float]]] = []
        for position, (listing, enrichment) in enumerate(zip(listings, enrichments)):
            breakdown = score_listing(listing, enrichment, query)
            scored.append((weighted_score(query.weights, breakdown), position, listing, breakdown))

        scored.sort(key=lambda item: (-item[0], item[1]))
        top = scored[: self.top_n]

        explanations = await asyncio.gather(
            *(self.explainer.explain(listing, breakdown, query) for _, _, listing, breakdown in top)
        )

        results = [
            MatchResult(
                listing_id=listing.id,
                listing=listing,
                match_score=score,
                breakdown=breakdown,
                explanation=explanation,
            )
            for (score, _, listing, breakdown), explanation in zip(top, explanations)
        ]
        LOGGER.info("Scored candidates=%s returned=%s", len(scored), len(results))
        return results

    async def _enrich_all(self, listings: list[Listing], query: Query) -> list[EnrichmentRecord | None]:
        if self.resolver is None or not needs_enrichment(query.weights):
            return [None] * len(listings)
        resolver = self.resolver

        async def enrich_one(listing: Listing) -> EnrichmentRecord | None:
            if not has_coordinates(listing):
                return None
            return await resolver.enrich(listing.lat, listing.lng, listing_id=listing.id)

        return list(await asyncio.gather(*(enrich_one(listing) for listing in listings)))
