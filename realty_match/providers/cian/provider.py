from __future__ import annotations

from typing import Any

from realty_match.core.models import Listing, Query
from realty_match.providers.base import HttpListingProvider, build_listing, safe_int


MOSCOW_REGION = 1


class CianProvider(HttpListingProvider):
    name = "cian"

    async def search(self, query: Query) -> list[Listing]:
        payload = await self.http.post(
            self.url("/export/offers"),
            json=build_search_params(query),
            headers=self._headers(),
            timeout=self.timeout_seconds,
        )
        offers = payload.get("offers") if isinstance(payload, dict) else None
        return [
            self.normalize(offer)
            for offer in offers or []
            if isinstance(offer, dict) and _offer_id(offer) is not None
        ]

    async def get(self, external_id: str) -> Listing | None:
        payload = await self._get_or_none(f"/offer/{external_id}", headers=self._headers())
        offer = payload.get("offer") if isinstance(payload, dict) else None
        if not isinstance(offer, dict) or _offer_id(offer) is None:
            return None
        return self.normalize(offer)

    def normalize(self, offer: dict[str, Any]) -> Listing:
        terms = offer.get("bargainTerms") if isinstance(offer.get("bargainTerms"), dict) else {}
        geo = offer.get("geo") if isinstance(offer.get("geo"), dict) else {}
        coordinates = geo.get("coordinates") if isinstance(geo.get("coordinates"), dict) else {}
        building = offer.get("building") if isinstance(offer.get("building"), dict) else {}
        category = str(offer.get("category") or "flatSale")
        photos = [
            photo.get("fullUrl")
            for photo in offer.get("photos") or []
            if isinstance(photo, dict) and photo.get("fullUrl")
        ]
        is_new = category.startswith("newBuilding") or bool(offer.get("newbuilding"))

        return build_listing(
            provider=self.name,
            external_id=_offer_id(offer),
            price=terms.get("price"),
            area=offer.get("totalArea"),
            rooms=offer.get("roomsCount"),
            lat=coordinates.get("lat"),
            lng=coordinates.get("lng"),
            title=_title(category, offer.get("roomsCount"), offer.get("totalArea")),
            address=geo.get("userInput"),
            floor=safe_int(offer.get("floorNumber")) or 0,
            total_floors=safe_int(building.get("floorsCount")) or 0,
            year=safe_int(building.get("buildYear")),
            photos=photos,
            description=offer.get("description"),
            has_parking=bool(building.get("parking")),
            is_new_building=is_new,
            deal_type="rent" if category.endswith("Rent") else "sale",
            property_type="new" if is_new else "secondary",
            url=offer.get("fullUrl"),
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        if self.partner_id:
            headers["X-Partner-ID"] = self.partner_id
        return headers


def build_search_params(query: Query) -> dict[str, Any]:
    params: dict[str, Any] = {
        "deal_type": "rent" if query.deal_type == "rent" else "sale",
        "offer_type": ["flat"],
        "region": MOSCOW_REGION,
        "page": 1,
        "limit": 30,
        "sort": "price_asc",
    }
    if query.budget.min:
        params["price_min"] = query.budget.min
    if query.budget.max:
        params["price_max"] = query.budget.max
    if query.rooms:
        params["room"] = ["4+" if rooms >= 4 else str(rooms) for rooms in query.rooms]
    if query.area_min:
        params["total_area_min"] = query.area_min
    if query.area_max:
        params["total_area_max"] = query.area_max
    if query.property_type == "new":
        params["building_status"] = "new"
    elif query.property_type == "secondary":
        params["building_status"] = "old"
    return params


def _offer_id(offer: dict[str, Any]) -> Any:
    return offer.get("cianId") if offer.get("cianId") is not None else offer.get("id")


def _title(category: str, rooms: Any, area: Any) -> str:
    kind = "Дом" if category.startswith("house") else "Квартира"
    prefix = f"{rooms}-комн. " if rooms else ""
    suffix = f", {area} м²" if area else ""
    return f"{prefix}{kind}{suffix}"
