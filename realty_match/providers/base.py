from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from realty_match.core.errors import DataQualityWarning, NonRetryableClientError
from realty_match.core.http import RetryingHttpClient
from realty_match.core.models import Listing, Query


LOGGER = logging.getLogger(__name__)

MAX_PHOTOS = 5


class ListingProvider(ABC):
    name: str

    @abstractmethod
    async def search(self, query: Query) -> list[Listing]:
        """Search the source and return canonical listings."""

    @abstractmethod
    async def get(self, external_id: str) -> Listing | None:
        """Fetch one listing by the source's own id."""

    def fetch_timestamp(self) -> datetime:
        return datetime.now(timezone.utc)


class HttpListingProvider(ListingProvider):
    """Adapter base for sources reached over HTTP through the shared client."""

    def __init__(
        self,
        http: RetryingHttpClient,
        base_url: str,
        api_key: str | None = None,
        partner_id: str | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.http = http
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.partner_id = partner_id
        self.timeout_seconds = timeout_seconds

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _get_or_none(self, path: str, **kwargs: Any) -> Any:
        """GET that maps a 404 to None; other failures propagate."""
        try:
            return await self.http.get(self.url(path), timeout=self.timeout_seconds, **kwargs)
        except NonRetryableClientError as exc:
            if exc.status_code == 404:
                return None
            raise


def build_listing(
    *,
    provider: str,
    external_id: Any,
    price: Any,
    area: Any,
    rooms: Any,
    lat: Any = None,
    lng: Any = None,
    **fields: Any,
) -> Listing:
    """
    Canonical Listing with price/area/rooms always numeric. Missing values
    default to 0 and are logged, the listing is kept.
    """
    missing: list[str] = []

    price_value = normalize_price(price)
    if price_value is None:
        missing.append("price")
    area_value = normalize_area(area)
    if area_value is None:
        missing.append("area")
    rooms_value = normalize_rooms(rooms)
    if rooms_value is None:
        missing.append("rooms")
    lat_value = _safe_float(lat)
    lng_value = _safe_float(lng)
    if lat_value is None or lng_value is None:
        missing.append("geo")
    for name in ("title", "address"):
        if not fields.get(name):
            missing.append(name)

    if missing:
        LOGGER.warning(
            "%s provider=%s external_id=%s incomplete mapping fields: %s",
            DataQualityWarning.__name__,
            provider,
            external_id,
            ", ".join(missing),
        )

    fields["title"] = str(fields.get("title") or "")
    fields["address"] = str(fields.get("address") or "")
    fields["description"] = str(fields.get("description") or "")
    fields["photos"] = [str(photo) for photo in (fields.get("photos") or []) if photo][:MAX_PHOTOS]

    return Listing(
        provider=provider,
        external_id=str(external_id),
        price=price_value or 0.0,
        area=area_value or 0.0,
        rooms=rooms_value or 0,
        lat=lat_value or 0.0,
        lng=lng_value or 0.0,
        **fields,
    )


def normalize_price(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        digits = re.sub(r"[^\d.,]", "", value).replace(",", ".")
        # Thousands separators survive as extra dots: keep only the last one.
        if digits.count(".") > 1:
            head, _, tail = digits.rpartition(".")
            digits = head.replace(".", "") + ("." + tail if len(tail) < 3 else tail)
        return _safe_float(digits)
    return None


def normalize_area(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, dict):
        return normalize_area(value.get("value"))
    if isinstance(value, str):
        match = re.search(r"\d+(?:[.,]\d+)?", value)
        return _safe_float(match.group(0).replace(",", ".")) if match else None
    return None


def normalize_rooms(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        if value.strip().lower() in {"studio", "студия"}:
            return 0
        match = re.search(r"\d+", value)
        return int(match.group(0)) if match else None
    return None


def _safe_float(value: Any) -> float | None:
    try:
        return float(value) if value is not None and value != "" else None
    except (TypeError, ValueError):
        return None


def safe_int(value: Any) -> int | None:
    try:
        return int(value) if value is not None else None
    except (TypeError, ValueError):
        return None
