import asyncio
import json
import logging

import httpx
import pytest

from realty_match.core.errors import ExternalServiceError
from realty_match.core.http import RetryingHttpClient
from realty_match.core.models import Budget, Query
from realty_match.core.rate_limit import TokenBucket
from realty_match.providers.base import (
    MAX_PHOTOS,
    build_listing,
    normalize_area,
    normalize_price,
    normalize_rooms,
)
from realty_match.providers.cian.provider import CianProvider
from realty_match.providers.cian.provider import build_search_params as cian_params
from realty_match.providers.domclick.provider import DomClickProvider
from realty_match.providers.pik.provider import PikProvider
from realty_match.providers.yandex_realty.provider import YandexRealtyProvider


def _call(provider_cls, handler, method: str, *args, **provider_kwargs):
    async def scenario():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            http = RetryingHttpClient(TokenBucket(600), client=client, retries=0)
            provider = provider_cls(http, base_url="https://provider.test/v1", **provider_kwargs)
            return await getattr(provider, method)(*args)

    return asyncio.run(scenario())


def test_yandex_search_normalizes_offers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "offers": [
                    {
                        "offerId": "y-1",
                        "type": "sell",
                        "price": {"value": 9_500_000},
                        "area": {"value": 48.5},
                        "rooms": 2,
                        "floor": 7,
                        "floorsTotal": 17,
                        "location": {
                            "address": "Москва, ул. Профсоюзная, 3",
                            "district": "Академический",
                            "coordinates": {"latitude": 55.68, "longitude": 37.57},
                        },
                        "images": [f"https://img/{n}.jpg" for n in range(8)],
                        "newFlat": True,
                        "description": "Новостройка",
                    },
                    {"price": {"value": 1}},
                ]
            },
        )

    query = Query(budget=Budget(min=5_000_000, max=10_000_000), rooms=(2,), property_type="new")
    listings = _call(YandexRealtyProvider, handler, "search", query, api_key="key", partner_id="p-1")

    assert seen["url"] == "https://provider.test/v1/offers/search"
    assert seen["auth"] == "OAuth key"
    assert seen["body"]["priceMax"] == 10_000_000
    assert seen["body"]["newFlat"] is True
    assert len(listings) == 1
    listing = listings[0]
    assert listing.id == "yandex_realty:y-1"
    assert (listing.price, listing.area, listing.rooms) == (9_500_000.0, 48.5, 2)
    assert (listing.lat, listing.lng) == (55.68, 37.57)
    assert listing.district == "Академический"
    assert listing.is_new_building and listing.property_type == "new"
    assert len(listing.photos) == MAX_PHOTOS
    assert listing.title == "2-комн. Квартира, 48.5 м²"


def test_cian_get_reads_wrapped_offer():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/offer/777"
        assert request.headers["authorization"] == "Bearer secret"
        return httpx.Response(
            200,
            json={
                "offer": {
                    "cianId": 777,
                    "category": "flatRent",
                    "bargainTerms": {"price": 85_000},
                    "totalArea": "64,3",
                    "roomsCount": 3,
                    "geo": {"userInput": "Москва, Ленинский пр., 10", "coordinates": {"lat": 55.7, "lng": 37.58}},
                    "building": {"floorsCount": 12, "buildYear": 1975, "parking": {"type": "ground"}},
                    "photos": [{"fullUrl": "https://img/1.jpg"}, {"thumbnail": "skip"}],
                }
            },
        )

    listing = _call(CianProvider, handler, "get", "777", api_key="secret", partner_id="p")

    assert listing.id == "cian:777"
    assert listing.deal_type == "rent"
    assert listing.area == pytest.approx(64.3)
    assert listing.total_floors == 12
    assert listing.year == 1975
    assert listing.has_parking is True
    assert listing.photos == ["https://img/1.jpg"]


def test_cian_search_params_group_large_flats():
    params = cian_params(Query(rooms=(1, 4, 5), deal_type="rent", property_type="secondary"))
    assert params["room"] == ["1", "4+", "4+"]
    assert params["deal_type"] == "rent"
    assert params["building_status"] == "old"


@pytest.mark.parametrize("provider_cls", [CianProvider, DomClickProvider, YandexRealtyProvider, PikProvider])
def test_get_missing_listing_returns_none(provider_cls):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"error": "not found"})

    assert _call(provider_cls, handler, "get", "missing", api_key="k", partner_id="p") is None


def test_search_propagates_server_failures():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502)

    with pytest.raises(ExternalServiceError):
        _call(DomClickProvider, handler, "search", Query(), api_key="k", partner_id="p")


def test_domclick_search_sends_credentials_as_query_params():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        return httpx.Response(
            200,
            json={
                "offers": [
                    {
                        "id": 31,
                        "price": {"value": "7 200 000"},
                        "area": {"value": 36},
                        "roomsCount": 0,
                        "address": {
                            "fullAddress": "Москва, ул. Гарибальди, 4",
                            "coordinates": {"latitude": 55.67, "longitude": 37.55},
                        },
                        "photos": ["https://img/a.jpg"],
                    }
                ]
            },
        )

    query = Query(districts=("Обручевский",), rooms=(0, 1))
    listings = _call(DomClickProvider, handler, "search", query, api_key="dk", partner_id="dp")

    assert seen["params"]["api_key"] == "dk"
    assert seen["params"]["partner_id"] == "dp"
    assert seen["params"]["rooms_count"] == "0,1"
    assert seen["params"]["district"] == "Обручевский"
    listing = listings[0]
    assert listing.id == "domclick:31"
    assert listing.price == 7_200_000
    assert listing.rooms == 0
    assert listing.title == "Студия 36 м²"


def test_pik_flattens_on_sale_layouts():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/v1/complexes/search"
        return httpx.Response(
            200,
            json={
                "data": [
                    {
                        "id": "c-1",
                        "complex": {
                            "name": "Саларьево Парк",
                            "address": "Москва, Саларьевская ул.",
                            "coordinates": {"lat": 55.62, "lng": 37.42},
                            "stage": "frame",
                            "commissioning_year": 2027,
                        },
                        "layouts": [
                            {"id": "l-1", "status": "on_sale", "price": 11_000_000, "area": 55, "rooms": 2, "floor": 9},
                            {"id": "l-2", "status": "sold", "price": 9_000_000, "area": 40, "rooms": 1},
                            {"id": "l-3", "status": "on_sale", "price": 7_000_000, "area": 33, "rooms": 1},
                        ],
                    }
                ]
            },
        )

    listings = _call(PikProvider, handler, "search", Query(), partner_id="pik-partner")

    assert [listing.id for listing in listings] == ["pik:l-1", "pik:l-3"]
    first = listings[0]
    assert first.developer == "ГК ПИК"
    assert first.stage == "frame"
    assert first.is_new_building and first.property_type == "new"
    assert first.year == 2027
    assert first.url == "https://www.pik.ru/projects/c-1/flats/l-1"
    assert "Саларьево Парк" in first.title


@pytest.mark.parametrize("query", [Query(deal_type="rent"), Query(property_type="secondary")])
def test_pik_skips_queries_it_cannot_serve(query):
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    assert _call(PikProvider, handler, "search", query, partner_id="p") == []


def test_build_listing_defaults_missing_fields_and_warns(caplog):
    with caplog.at_level(logging.WARNING):
        listing = build_listing(provider="cian", external_id=5, price=None, area="n/a", rooms=None, title="Квартира")

    assert (listing.price, listing.area, listing.rooms) == (0.0, 0.0, 0)
    assert (listing.lat, listing.lng) == (0.0, 0.0)
    assert listing.external_id == "5"
    assert listing.address == ""
    assert "DataQualityWarning" in caplog.text
    assert "price, area, rooms, geo, address" in caplog.text


def test_normalizers():
    assert normalize_price("12 500 000 ₽") == 12_500_000
    assert normalize_price("1.200.000") == 1_200_000
    assert normalize_price(True) is None
    assert normalize_area("54,2 м²") == pytest.approx(54.2)
    assert normalize_area({"value": 40}) == 40
    assert normalize_rooms("студия") == 0
    assert normalize_rooms("3-комн") == 3
    assert normalize_rooms(None) is None
