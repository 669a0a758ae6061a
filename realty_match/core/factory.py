from __future__ import annotations

from openai import AsyncOpenAI

from realty_match.core.config import Settings
from realty_match.core.enrichment import EnrichmentCache, EnrichmentResolver
from realty_match.core.explain import AssistedExplainer, RuleBasedExplainer
from realty_match.core.http import RetryingHttpClient
from realty_match.core.rate_limit import TokenBucket
from realty_match.core.recommend import Explainer, RecommendationAssembler
from realty_match.geo.base import NearbySource
from realty_match.geo.dgis import DgisSource
from realty_match.geo.overpass import OverpassSource
from realty_match.geo.yandex_maps import YandexMapsSource
from realty_match.providers.aggregator import AggregatingProvider
from realty_match.providers.base import HttpListingProvider
from realty_match.providers.cian.provider import CianProvider
from realty_match.providers.domclick.provider import DomClickProvider
from realty_match.providers.pik.provider import PikProvider
from realty_match.providers.yandex_realty.provider import YandexRealtyProvider


PROVIDER_CLASSES: dict[str, type[HttpListingProvider]] = {
    "yandex_realty": YandexRealtyProvider,
    "cian": CianProvider,
    "domclick": DomClickProvider,
    "pik": PikProvider,
}


def build_http_client(settings: Settings) -> RetryingHttpClient:
    bucket = TokenBucket(settings.requests_per_minute)
    return RetryingHttpClient(
        bucket,
        retries=settings.http_retries,
        timeout=settings.http_timeout_seconds,
    )


def build_aggregator(settings: Settings, http: RetryingHttpClient) -> AggregatingProvider:
    providers = [
        PROVIDER_CLASSES[item.name](
            http,
            base_url=item.base_url,
            api_key=item.api_key,
            partner_id=item.partner_id,
            timeout_seconds=settings.http_timeout_seconds,
        )
        for item in settings.providers
    ]
    return AggregatingProvider(providers)


def build_geo_sources(settings: Settings, http: RetryingHttpClient) -> list[NearbySource]:
    """Priority order: commercial APIs first, open data last."""
    timeout = settings.enrichment_timeout_seconds
    sources: list[NearbySource] = []
    if settings.yandex_maps_api_key:
        sources.append(YandexMapsSource(http, settings.yandex_maps_api_key, timeout_seconds=timeout))
    if settings.dgis_api_key:
        sources.append(DgisSource(http, settings.dgis_api_key, timeout_seconds=timeout))
    sources.append(OverpassSource(http, base_url=settings.overpass_url, timeout_seconds=timeout))
    return sources


def build_resolver(
    settings: Settings,
    http: RetryingHttpClient,
    cache: EnrichmentCache | None = None,
) -> EnrichmentResolver:
    return EnrichmentResolver(
        build_geo_sources(settings, http),
        cache=cache,
        ttl_days=settings.enrichment_cache_days,
    )


def build_explainer(settings: Settings) -> Explainer:
    if not settings.openai_api_key:
        return RuleBasedExplainer()
    return AssistedExplainer(
        AsyncOpenAI(api_key=settings.openai_api_key, max_retries=0),
        model=settings.explain_model,
        timeout_seconds=settings.http_timeout_seconds,
    )


def build_assembler(
    settings: Settings,
    http: RetryingHttpClient,
    cache: EnrichmentCache | None = None,
    top_n: int = 10,
) -> RecommendationAssembler:
    return RecommendationAssembler(
        build_aggregator(settings, http),
        resolver=build_resolver(settings, http, cache=cache),
        explainer=build_explainer(settings),
        top_n=top_n,
    )
