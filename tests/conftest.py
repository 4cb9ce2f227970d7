from __future__ import annotations

import asyncio
import math
from collections import Counter
from typing import Iterable, List, Optional

import pytest

from carefinder.directory.memory import InMemoryProviderDirectory
from carefinder.domain import BoundingBox, Coordinate, LocationRecord, LocationSource, ProviderRecord
from carefinder.services.geoclients import GeoLookup, Place


BENGALURU = Coordinate(12.9716, 77.5946)


class CountingDirectory:
    """In-memory directory that records how often each query was made."""

    def __init__(self, records: Iterable[ProviderRecord] = ()):
        self.inner = InMemoryProviderDirectory(records)
        self.calls: Counter = Counter()

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    async def query_by_city(self, city: str) -> List[ProviderRecord]:
        self.calls["city"] += 1
        return await self.inner.query_by_city(city)

    async def query_by_region(self, region: str) -> List[ProviderRecord]:
        self.calls["region"] += 1
        return await self.inner.query_by_region(region)

    async def query_with_coordinates(
        self, bbox: Optional[BoundingBox] = None, near: Optional[Coordinate] = None
    ) -> List[ProviderRecord]:
        self.calls["coordinates"] += 1
        return await self.inner.query_with_coordinates(bbox, near)

    async def find_by_id(self, provider_id: str) -> Optional[ProviderRecord]:
        self.calls["find"] += 1
        return await self.inner.find_by_id(provider_id)

    async def reset(self) -> None:
        self.calls["reset"] += 1


class FakeIpClient:
    def __init__(self, result: Optional[GeoLookup] = None, error: Optional[Exception] = None, delay: float = 0.0):
        self.result = result
        self.error = error
        self.delay = delay
        self.calls: List[str] = []

    async def lookup(self, ip: str) -> GeoLookup:
        self.calls.append(ip)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class FakeReverseGeocoder:
    def __init__(self, place: Optional[Place] = None, error: Optional[Exception] = None, delay: float = 0.0):
        self.place = place
        self.error = error
        self.delay = delay
        self.calls: List[Coordinate] = []

    async def reverse(self, point: Coordinate) -> Place:
        self.calls.append(point)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.place


def offset(point: Coordinate, north_km: float = 0.0, east_km: float = 0.0) -> Coordinate:
    """Point roughly ``north_km``/``east_km`` away from ``point`` (small distances only)."""
    dlat = north_km / 111.195
    dlng = east_km / (111.195 * math.cos(math.radians(point.latitude)))
    return Coordinate(point.latitude + dlat, point.longitude + dlng)


def provider(
    pid: str,
    city: Optional[str] = None,
    region: Optional[str] = None,
    coordinates: Optional[Coordinate] = None,
    specialties: Iterable[str] = (),
) -> ProviderRecord:
    return ProviderRecord(
        id=pid,
        name=f"Provider {pid}",
        coordinates=coordinates,
        city=city,
        region=region,
        specialties=frozenset(specialties),
    )


@pytest.fixture()
def bengaluru_location() -> LocationRecord:
    return LocationRecord(
        coordinates=BENGALURU,
        source=LocationSource.EXPLICIT,
        city="Bengaluru",
        region="Karnataka",
        country="India",
    )
