from __future__ import annotations

from typing import Any

from realty_match.core.models import Listing, Query
from realty_match.providers.base import HttpListingProvider, build_listing, safe_int


DEVELOPER_NAME = "ГК ПИК"
PIK_SITE_URL = "https://www.pik.ru"


class PikProvider(HttpListingProvider):
    """Developer feed: every on-sale layout of a complex becomes one new-build listing."""

    name = "pik"

    async def search(self, query: Query) -> list[Listing]:
        if query.deal_type == "rent" or query.property_type == "secondary":
            return []
        payload = await self.http.get(
            self.url("/complexes/search"),
            params=self._search_params(query),
            timeout=self.timeout_seconds,
        )
        complexes = payload.get("data") if isinstance(payload, dict) else None
        listings: list[Listing] = []
        for complex_item in complexes or []:
            if not isinstance(complex_item, dict):
                continue
            info = complex_item.get("complex") if isinstance(complex_item.get("complex"), dict) else {}
            for layout in complex_item.get("layouts") or []:
                if not isinstance(layout, dict) or layout.get("status") != "on_sale":
                    continue
                listings.append(self.normalize(layout, info, complex_id=complex_item.get("id")))
        return listings

    async def get(self, external_id: str) -> Listing | None:
        payload = await self._get_or_none(f"/layouts/{external_id}", params={"partner_id": self.partner_id})
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, dict) or data.get("id") is None:
            return None
        info = data.get("complex") if isinstance(data.get("complex"), dict) else {}
        return self.normalize(data, info, complex_id=info.get("id"))

    def normalize(self, layout: dict[str, Any], info: dict[str, Any], complex_id: Any = None) -> Listing:
        coordinates = info.get("coordinates") if isinstance(info.get("coordinates"), dict) else {}
        complex_name = info.get("name") or ""
        rooms = layout.get("rooms")
        floor = safe_int(layout.get("floor")) or 0

        return build_listing(
            provider=self.name,
            external_id=layout.get("id"),
            price=layout.get("price"),
            area=layout.get("area"),
            rooms=rooms,
            lat=coordinates.get("lat"),
            lng=coordinates.get("lng"),
            title=f"{rooms}-комн квартира в {complex_name}".strip(),
            address=info.get("address"),
            floor=floor,
            total_floors=safe_int(layout.get("floors_total")) or 0,
            year=safe_int(info.get("commissioning_year")),
            stage=info.get("stage") or layout.get("stage"),
            photos=layout.get("images") or [],
            description=layout.get("description") or f"Новая квартира от ПИК. {complex_name}. Этаж {floor}.",
            has_parking=bool(info.get("parking")),
            is_new_building=True,
            developer=DEVELOPER_NAME,
            deal_type="sale",
            property_type="new",
            url=f"{PIK_SITE_URL}/projects/{complex_id}/flats/{layout.get('id')}" if complex_id else None,
        )

    def _search_params(self, query: Query) -> dict[str, Any]:
        params: dict[str, Any] = {
            "partner_id": self.partner_id,
            "city": "moscow",
            "status": "on_sale",
        }
        if query.districts:
            params["district"] = ",".join(query.districts)
        if query.rooms:
            params["rooms"] = ",".join(str(rooms) for rooms in query.rooms)
        if query.budget.min:
            params["price_min"] = query.budget.min
        if query.budget.max:
            params["price_max"] = query.budget.max
        if query.area_min:
            params["area_min"] = query.area_min
        if query.area_max:
            params["area_max"] = query.area_max
        return params
