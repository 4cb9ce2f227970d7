from typing import List, Optional, Protocol

from carefinder.domain import BoundingBox, Coordinate, ProviderRecord


class ProviderDirectory(Protocol):
    """Read-only view over one kind of provider (hospitals or doctors)."""

    async def query_by_city(self, city: str) -> List[ProviderRecord]: ...

    async def query_by_region(self, region: str) -> List[ProviderRecord]: ...

    async def query_with_coordinates(
        self, bbox: Optional[BoundingBox] = None, near: Optional[Coordinate] = None
    ) -> List[ProviderRecord]:
        """Providers with coordinates inside ``bbox``; nearest to ``near`` first when given."""
        ...

    async def find_by_id(self, provider_id: str) -> Optional[ProviderRecord]: ...

    async def reset(self) -> None:
        """Recover after an interrupted or failed query so the next one can run."""
        ...
