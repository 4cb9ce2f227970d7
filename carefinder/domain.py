"""
Request-scoped value types shared by the matching core.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Mapping, Optional

from carefinder.errors import InputError


class LocationSource(str, enum.Enum):
    EXPLICIT = "explicit"
    IP_GEOLOCATION = "ip-geolocation"
    REVERSE_GEOCODE = "reverse-geocode"
    DEFAULT_FALLBACK = "default-fallback"


class SearchTier(str, enum.Enum):
    CITY_EXACT = "city-exact"
    REGION_FALLBACK = "region-fallback"
    COORDINATE_SCAN = "coordinate-scan"


class ProviderKind(str, enum.Enum):
    HOSPITAL = "hospital"
    DOCTOR = "doctor"


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        try:
            lat = float(self.latitude)
            lng = float(self.longitude)
        except (TypeError, ValueError):
            raise InputError(f"Coordinates must be numeric, got ({self.latitude!r}, {self.longitude!r})") from None
        if not (math.isfinite(lat) and math.isfinite(lng)):
            raise InputError("Coordinates must be finite numbers")
        if not -90.0 <= lat <= 90.0:
            raise InputError(f"Latitude {lat} is outside [-90, 90]")
        if not -180.0 <= lng <= 180.0:
            raise InputError(f"Longitude {lng} is outside [-180, 180]")
        object.__setattr__(self, "latitude", lat)
        object.__setattr__(self, "longitude", lng)

    @classmethod
    def parse(cls, latitude: Any, longitude: Any) -> Optional["Coordinate"]:
        """Build a Coordinate from loose data, returning None when unusable."""
        if latitude is None or longitude is None:
            return None
        try:
            return cls(latitude, longitude)
        except InputError:
            return None


@dataclass(frozen=True)
class LocationRecord:
    coordinates: Coordinate
    source: LocationSource
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None

    @property
    def has_place(self) -> bool:
        return bool(self.city or self.region)

    def with_place(self, city: Optional[str], region: Optional[str], country: Optional[str], source: LocationSource) -> "LocationRecord":
        return replace(
            self,
            city=self.city or city,
            region=self.region or region,
            country=self.country or country,
            source=source,
        )


@dataclass(frozen=True)
class ProviderRecord:
    id: str
    name: str
    coordinates: Optional[Coordinate] = None
    city: Optional[str] = None
    region: Optional[str] = None
    specialties: frozenset = frozenset()
    raw: Mapping[str, Any] = field(default_factory=dict, hash=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "specialties", frozenset(self.specialties))
        if not isinstance(self.raw, MappingProxyType):
            object.__setattr__(self, "raw", MappingProxyType(dict(self.raw)))


@dataclass(frozen=True)
class RankedResult:
    provider: ProviderRecord
    distance_km: float
    distance_is_estimated: bool = False

    @property
    def sort_key(self) -> tuple:
        return (self.distance_km, self.provider.id)


@dataclass(frozen=True)
class BoundingBox:
    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float

    def contains(self, point: Coordinate) -> bool:
        return (
            self.min_latitude <= point.latitude <= self.max_latitude
            and self.min_longitude <= point.longitude <= self.max_longitude
        )
