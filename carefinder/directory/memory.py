from typing import Dict, Iterable, List, Optional

from carefinder.domain import BoundingBox, Coordinate, ProviderRecord
from carefinder.services.geo import distance_km
from carefinder.services.places import city_variants, normalize_place, place_matches


class InMemoryProviderDirectory:
    """
    Directory over a fixed list of records, applying the same matching rules as
    the SQL directory. Used for fixtures, tests and small static catalogues.
    """

    def __init__(self, records: Iterable[ProviderRecord] = (), max_rows: Optional[int] = None):
        self._records: List[ProviderRecord] = list(records)
        self._by_id: Dict[str, ProviderRecord] = {}
        for record in self._records:
            self._by_id.setdefault(record.id, record)
        self.max_rows = max_rows

    def _cap(self, rows: List[ProviderRecord]) -> List[ProviderRecord]:
        if self.max_rows is not None:
            return rows[: self.max_rows]
        return rows

    async def query_by_city(self, city: str) -> List[ProviderRecord]:
        variants = city_variants(city)
        return self._cap([r for r in self._records if place_matches(r.city, variants)])

    async def query_by_region(self, region: str) -> List[ProviderRecord]:
        wanted = normalize_place(region)
        if not wanted:
            return []
        return self._cap([r for r in self._records if place_matches(r.region, [wanted])])

    async def query_with_coordinates(
        self, bbox: Optional[BoundingBox] = None, near: Optional[Coordinate] = None
    ) -> List[ProviderRecord]:
        rows = [r for r in self._records if r.coordinates is not None]
        if bbox is not None:
            rows = [r for r in rows if bbox.contains(r.coordinates)]
        if near is not None:
            rows.sort(key=lambda r: distance_km(near, r.coordinates))
        return self._cap(rows)

    async def find_by_id(self, provider_id: str) -> Optional[ProviderRecord]:
        return self._by_id.get(str(provider_id))

    async def reset(self) -> None:
        pass
