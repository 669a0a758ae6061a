from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(slots=True)
class NearbyCounts:
    schools_count: int
    parks_count: int
    metro_distances_m: list[float] = field(default_factory=list)

    @property
    def nearest_metro_m(self) -> float | None:
        return min(self.metro_distances_m) if self.metro_distances_m else None


class NearbySource(ABC):
    name: str

    @abstractmethod
    async def fetch(self, lat: float, lng: float, radius_m: int) -> NearbyCounts | None:
        """Count amenities around a point. None means this source has no data."""
