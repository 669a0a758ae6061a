from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from realty_match.core.errors import ConfigurationError


DEFAULT_BASE_URLS = {
    "yandex_realty": "https://realty-partners.yandex.ru/api/v1",
    "cian": "https://partners.cian.ru/api/v2",
    "domclick": "https://api.domclick.ru/v1",
    "pik": "https://api.pik.ru/v2",
}
# PIK only needs a partner id; the marketplaces also want an api key.
REQUIRED_CREDENTIALS = {
    "yandex_realty": ("API_KEY", "PARTNER_ID"),
    "cian": ("API_KEY", "PARTNER_ID"),
    "domclick": ("API_KEY", "PARTNER_ID"),
    "pik": ("PARTNER_ID",),
}
DEFAULT_OVERPASS_URL = "https://overpass-api.de/api/interpreter"


@dataclass(frozen=True, slots=True)
class ProviderSettings:
    name: str
    base_url: str
    api_key: str | None = None
    partner_id: str | None = None


@dataclass(frozen=True, slots=True)
class Settings:
    requests_per_minute: int = 60
    enrichment_cache_days: int = 7
    http_retries: int = 3
    http_timeout_seconds: float = 10.0
    enrichment_timeout_seconds: float = 15.0
    providers: tuple[ProviderSettings, ...] = ()
    yandex_maps_api_key: str | None = None
    dgis_api_key: str | None = None
    overpass_url: str = DEFAULT_OVERPASS_URL
    openai_api_key: str | None = None
    explain_model: str = "gpt-4o-mini"
    supabase_url: str | None = None
    supabase_key: str | None = None

    @property
    def enrichment_cache_ttl_seconds(self) -> int:
        return self.enrichment_cache_days * 24 * 60 * 60

    @property
    def supabase_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """
    Read settings from the environment. Raises ConfigurationError when an
    enabled provider is missing credentials so the process fails before
    serving any query.
    """
    source = os.environ if env is None else env

    rpm = _env_int(source, "REQUESTS_PER_MINUTE", default=_env_int(source, "ENRICHMENT_RPM", default=60))
    if rpm <= 0:
        raise ConfigurationError("REQUESTS_PER_MINUTE must be positive.")

    enabled_raw = source.get("ENABLED_PROVIDERS", "")
    enabled = [name.strip().lower() for name in enabled_raw.split(",") if name.strip()]

    providers: list[ProviderSettings] = []
    missing: list[str] = []
    for name in enabled:
        if name not in DEFAULT_BASE_URLS:
            raise ConfigurationError(f"Unknown provider in ENABLED_PROVIDERS: {name}")
        prefix = name.upper()
        for suffix in REQUIRED_CREDENTIALS[name]:
            if not _env_str(source, f"{prefix}_{suffix}"):
                missing.append(f"{prefix}_{suffix}")
        providers.append(
            ProviderSettings(
                name=name,
                base_url=_env_str(source, f"{prefix}_BASE_URL") or DEFAULT_BASE_URLS[name],
                api_key=_env_str(source, f"{prefix}_API_KEY"),
                partner_id=_env_str(source, f"{prefix}_PARTNER_ID"),
            )
        )
    if missing:
        raise ConfigurationError(f"Missing provider credentials: {', '.join(missing)}")

    supabase_url = _env_str(source, "SUPABASE_URL")
    supabase_key = _env_str(source, "SUPABASE_SERVICE_ROLE_KEY")
    if bool(supabase_url) != bool(supabase_key):
        raise ConfigurationError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set together.")

    return Settings(
        requests_per_minute=rpm,
        enrichment_cache_days=max(0, _env_int(source, "ENRICHMENT_CACHE_DAYS", default=7)),
        http_retries=max(0, _env_int(source, "HTTP_RETRIES", default=3)),
        http_timeout_seconds=_env_float(source, "HTTP_TIMEOUT_SECONDS", default=10.0),
        enrichment_timeout_seconds=_env_float(source, "ENRICHMENT_TIMEOUT_SECONDS", default=15.0),
        providers=tuple(providers),
        yandex_maps_api_key=_env_str(source, "YANDEX_MAPS_API_KEY"),
        dgis_api_key=_env_str(source, "DGIS_API_KEY"),
        overpass_url=_env_str(source, "OVERPASS_API_URL") or DEFAULT_OVERPASS_URL,
        openai_api_key=_env_str(source, "OPENAI_API_KEY"),
        explain_model=_env_str(source, "EXPLAIN_MODEL") or "gpt-4o-mini",
        supabase_url=supabase_url,
        supabase_key=supabase_key,
    )


def _env_str(source: Mapping[str, str], name: str) -> str | None:
    raw = source.get(name)
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def _env_int(source: Mapping[str, str], name: str, default: int) -> int:
    raw = source.get(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except (TypeError, ValueError):
        return default


def _env_float(source: Mapping[str, str], name: str, default: float) -> float:
    raw = source.get(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except (TypeError, ValueError):
        return default
