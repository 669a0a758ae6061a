import pytest

from realty_match.core.config import DEFAULT_BASE_URLS, DEFAULT_OVERPASS_URL, load_settings
from realty_match.core.errors import ConfigurationError


def test_defaults_without_environment():
    settings = load_settings({})
    assert settings.requests_per_minute == 60
    assert settings.enrichment_cache_ttl_seconds == 7 * 24 * 3600
    assert settings.http_retries == 3
    assert settings.providers == ()
    assert settings.overpass_url == DEFAULT_OVERPASS_URL
    assert settings.supabase_enabled is False


def test_enabled_providers_are_configured():
    env = {
        "ENABLED_PROVIDERS": "cian, PIK",
        "CIAN_API_KEY": "ck",
        "CIAN_PARTNER_ID": "cp",
        "PIK_PARTNER_ID": "pp",
        "PIK_BASE_URL": "https://pik.test/api",
        "REQUESTS_PER_MINUTE": "30",
        "HTTP_RETRIES": "oops",
    }
    settings = load_settings(env)

    cian, pik = settings.providers
    assert (cian.name, cian.api_key, cian.partner_id) == ("cian", "ck", "cp")
    assert cian.base_url == DEFAULT_BASE_URLS["cian"]
    assert (pik.name, pik.api_key, pik.base_url) == ("pik", None, "https://pik.test/api")
    assert settings.requests_per_minute == 30
    assert settings.http_retries == 3


def test_legacy_rate_variable_is_honoured():
    assert load_settings({"ENRICHMENT_RPM": "12"}).requests_per_minute == 12
    assert load_settings({"ENRICHMENT_RPM": "12", "REQUESTS_PER_MINUTE": "20"}).requests_per_minute == 20


def test_missing_credentials_fail_fast():
    with pytest.raises(ConfigurationError) as excinfo:
        load_settings({"ENABLED_PROVIDERS": "domclick,yandex_realty", "DOMCLICK_API_KEY": "k"})
    message = str(excinfo.value)
    assert "DOMCLICK_PARTNER_ID" in message
    assert "YANDEX_REALTY_API_KEY" in message
    assert "DOMCLICK_API_KEY" not in message


@pytest.mark.parametrize(
    "env",
    [
        {"ENABLED_PROVIDERS": "avito"},
        {"REQUESTS_PER_MINUTE": "0"},
        {"SUPABASE_URL": "https://db.test"},
        {"SUPABASE_SERVICE_ROLE_KEY": "secret"},
    ],
)
def test_invalid_configuration_raises(env):
    with pytest.raises(ConfigurationError):
        load_settings(env)


def test_supabase_enabled_with_both_values():
    settings = load_settings({"SUPABASE_URL": "https://db.test", "SUPABASE_SERVICE_ROLE_KEY": "secret"})
    assert settings.supabase_enabled is True
