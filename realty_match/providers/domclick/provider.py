from __future__ import annotations

from typing import Any

from realty_match.core.models import Listing, Query
from realty_match.providers.base import HttpListingProvider, build_listing, safe_int


class DomClickProvider(HttpListingProvider):
    name = "domclick"

    async def search(self, query: Query) -> list[Listing]:
        payload = await self.http.get(
            self.url("/offers/search"),
            params=self._search_params(query),
            timeout=self.timeout_seconds,
        )
        offers = payload.get("offers") if isinstance(payload, dict) else None
        return [
            self.normalize(offer)
            for offer in offers or []
            if isinstance(offer, dict) and offer.get("id") is not None
        ]

    async def get(self, external_id: str) -> Listing | None:
        payload = await self._get_or_none(f"/offers/{external_id}", params=self._auth_params())
        offer = payload.get("offer") if isinstance(payload, dict) else None
        if not isinstance(offer, dict) or offer.get("id") is None:
            return None
        return self.normalize(offer)

    def normalize(self, offer: dict[str, Any]) -> Listing:
        address = offer.get("address") if isinstance(offer.get("address"), dict) else {}
        coordinates = address.get("coordinates") if isinstance(address.get("coordinates"), dict) else {}
        price = offer.get("price") if isinstance(offer.get("price"), dict) else {}
        area = offer.get("area") if isinstance(offer.get("area"), dict) else {}
        is_new = bool(offer.get("isNewBuilding"))

        return build_listing(
            provider=self.name,
            external_id=offer.get("id"),
            price=price.get("value"),
            area=area.get("value"),
            rooms=offer.get("roomsCount"),
            lat=coordinates.get("latitude"),
            lng=coordinates.get("longitude"),
            title=_title(offer.get("roomsCount"), area.get("value"), is_new),
            address=address.get("fullAddress"),
            district=address.get("district"),
            floor=safe_int(offer.get("floor")) or 0,
            total_floors=safe_int(offer.get("floorsCount")) or 0,
            year=safe_int(offer.get("buildingYear")),
            photos=offer.get("photos") or [],
            description=offer.get("description"),
            has_parking=bool(offer.get("parking")),
            is_new_building=is_new,
            deal_type="rent" if offer.get("type") == "rent" else "sale",
            property_type="new" if is_new else "secondary",
            url=offer.get("url"),
        )

    def _auth_params(self) -> dict[str, Any]:
        return {"api_key": self.api_key, "partner_id": self.partner_id}

    def _search_params(self, query: Query) -> dict[str, Any]:
        params: dict[str, Any] = {
            **self._auth_params(),
            "deal_type": "rent" if query.deal_type == "rent" else "sale",
            "region": "moscow",
            "sort": "price",
            "limit": 50,
        }
        if query.property_type == "new":
            params["offer_type"] = "primary"
        elif query.property_type == "secondary":
            params["offer_type"] = "secondary"
        if query.districts:
            params["district"] = ",".join(query.districts)
        if query.rooms:
            params["rooms_count"] = ",".join(str(rooms) for rooms in query.rooms)
        if query.budget.min:
            params["price_min"] = query.budget.min
        if query.budget.max:
            params["price_max"] = query.budget.max
        if query.area_min:
            params["area_min"] = query.area_min
        if query.area_max:
            params["area_max"] = query.area_max
        return params


def _title(rooms: Any, area: Any, is_new: bool) -> str:
    rooms_text = "Студия" if rooms == 0 else f"{rooms}-комн квартира"
    area_text = f" {area} м²" if area else ""
    type_text = " в новостройке" if is_new else ""
    return f"{rooms_text}{area_text}{type_text}"
