from __future__ import annotations

from typing import Any

from realty_match.core.models import Listing, Query
from realty_match.providers.base import HttpListingProvider, build_listing, safe_int


MOSCOW_RGID = 587795


class YandexRealtyProvider(HttpListingProvider):
    name = "yandex_realty"

    async def search(self, query: Query) -> list[Listing]:
        payload = await self.http.post(
            self.url("/offers/search"),
            json=build_search_params(query),
            headers=self._headers(),
            timeout=self.timeout_seconds,
        )
        offers = payload.get("offers") if isinstance(payload, dict) else None
        listings: list[Listing] = []
        for offer in offers or []:
            if isinstance(offer, dict) and offer.get("offerId") is not None:
                listings.append(self.normalize(offer, deal_type=query.deal_type))
        return listings

    async def get(self, external_id: str) -> Listing | None:
        payload = await self._get_or_none(f"/offers/{external_id}", headers=self._headers())
        if not isinstance(payload, dict) or payload.get("offerId") is None:
            return None
        return self.normalize(payload)

    def normalize(self, offer: dict[str, Any], deal_type: str | None = None) -> Listing:
        location = offer.get("location") if isinstance(offer.get("location"), dict) else {}
        coordinates = location.get("coordinates") if isinstance(location.get("coordinates"), dict) else {}
        price = offer.get("price") if isinstance(offer.get("price"), dict) else {}
        area = offer.get("area") if isinstance(offer.get("area"), dict) else {}
        offer_type = offer.get("type")
        resolved_deal = "rent" if offer_type == "rent" else ("sale" if offer_type == "sell" else deal_type or "sale")
        is_new = bool(offer.get("newFlat"))

        return build_listing(
            provider=self.name,
            external_id=offer.get("offerId"),
            price=price.get("value"),
            area=area.get("value"),
            rooms=offer.get("rooms"),
            lat=coordinates.get("latitude"),
            lng=coordinates.get("longitude"),
            title=_title(offer.get("category"), offer.get("rooms"), area.get("value")),
            address=location.get("address") or location.get("geocoderAddress"),
            district=location.get("district"),
            floor=safe_int(offer.get("floor")) or 0,
            total_floors=safe_int(offer.get("floorsTotal")) or 0,
            year=safe_int(offer.get("builtYear")),
            photos=offer.get("images") or [],
            description=offer.get("description"),
            has_parking=bool(offer.get("parking")),
            is_new_building=is_new,
            deal_type=resolved_deal,
            property_type="new" if is_new else "secondary",
            url=offer.get("url"),
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Authorization": f"OAuth {self.api_key}"} if self.api_key else {}
        if self.partner_id:
            headers["X-Partner-ID"] = self.partner_id
        return headers


def build_search_params(query: Query) -> dict[str, Any]:
    params: dict[str, Any] = {
        "type": "rent" if query.deal_type == "rent" else "sell",
        "category": ["apartment", "house"],
        "rgid": MOSCOW_RGID,
        "page": 1,
        "pageSize": 20,
    }
    if query.budget.min:
        params["priceMin"] = query.budget.min
    if query.budget.max:
        params["priceMax"] = query.budget.max
    if query.rooms:
        params["roomsTotal"] = list(query.rooms)
    if query.area_min:
        params["areaMin"] = query.area_min
    if query.area_max:
        params["areaMax"] = query.area_max
    if query.districts:
        params["district"] = list(query.districts)
    if query.property_type == "new":
        params["newFlat"] = True
    elif query.property_type == "secondary":
        params["newFlat"] = False
    return params


def _title(category: Any, rooms: Any, area: Any) -> str:
    kind = "Квартира" if category in (None, "apartment") else "Дом"
    prefix = f"{rooms}-комн. " if rooms else ""
    suffix = f", {area} м²" if area else ""
    return f"{prefix}{kind}{suffix}"
