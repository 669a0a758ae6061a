from __future__ import annotations

import asyncio
import logging

from realty_match.core.dedupe import deduplicate_listings
from realty_match.core.errors import ExternalServiceError
from realty_match.core.models import Listing, Query
from realty_match.providers.base import ListingProvider


LOGGER = logging.getLogger(__name__)


class AggregatingProvider(ListingProvider):
    """
    Fans a query out to every adapter at once and waits for all of them.
    A failing adapter only shrinks the candidate set.
    """

    name = "aggregator"

    def __init__(self, providers: list[ListingProvider]) -> None:
        self.providers = list(providers)

    async def search(self, query: Query) -> list[Listing]:
        results = await asyncio.gather(
            *(provider.search(query) for provider in self.providers),
            return_exceptions=True,
        )

        merged: list[Listing] = []
        for provider, result in zip(self.providers, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                _log_source_failure(provider.name, result)
                continue
            LOGGER.info("Provider=%s returned=%s", provider.name, len(result))
            merged.extend(result)

        deduped = deduplicate_listings(merged)
        LOGGER.info(
            "Aggregated providers=%s merged=%s deduped=%s",
            len(self.providers),
            len(merged),
            len(deduped),
        )
        return deduped

    async def get(self, listing_id: str) -> Listing | None:
        """
        Accepts a canonical id ("provider:external_id") or a bare external id,
        in which case every adapter is asked in order.
        """
        provider_name, _, external_id = listing_id.partition(":")
        if external_id:
            candidates = [p for p in self.providers if p.name == provider_name]
        else:
            external_id = listing_id
            candidates = self.providers

        for provider in candidates:
            try:
                listing = await provider.get(external_id)
            except Exception as exc:  # noqa: BLE001
                _log_source_failure(provider.name, exc)
                continue
            if listing is not None:
                return listing
        return None


def _log_source_failure(provider_name: str, error: BaseException) -> None:
    if isinstance(error, ExternalServiceError):
        LOGGER.warning("Provider=%s unavailable, skipping: %s", provider_name, error)
    else:
        LOGGER.error("Provider=%s failed, skipping: %r", provider_name, error)
