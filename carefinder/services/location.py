"""
Location resolution: explicit coordinates, IP geolocation or the default
location. Resolution never fails; a degraded LocationRecord is always usable by
the ranking engine.
"""

from __future__ import annotations

import ipaddress
from typing import Optional, Protocol

from carefinder.domain import Coordinate, LocationRecord, LocationSource
from carefinder.errors import CollaboratorError, within_budget
from carefinder.logging_config import get_logger, log_collaborator_failure
from carefinder.services.geoclients import GeoLookup, Place

logger = get_logger(__name__)


# Process-wide fallback used whenever no better location can be determined
DEFAULT_LOCATION = LocationRecord(
    coordinates=Coordinate(12.9716, 77.5946),
    source=LocationSource.DEFAULT_FALLBACK,
    city="Bengaluru",
    region="Karnataka",
    country="India",
)


class IpLookup(Protocol):
    async def lookup(self, ip: str) -> GeoLookup: ...


class ReverseLookup(Protocol):
    async def reverse(self, point: Coordinate) -> Place: ...


def is_public_ip(ip_address: Optional[str]) -> bool:
    """False for loopback, private, link-local, reserved and unparseable addresses."""
    if not ip_address:
        return False
    try:
        address = ipaddress.ip_address(ip_address.strip())
    except ValueError:
        return False
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return not (
        address.is_loopback
        or address.is_private
        or address.is_link_local
        or address.is_reserved
        or address.is_multicast
        or address.is_unspecified
    )


class LocationResolver:
    def __init__(
        self,
        ip_client: Optional[IpLookup] = None,
        reverse_geocoder: Optional[ReverseLookup] = None,
        timeout_seconds: float = 5.0,
        reverse_timeout_seconds: float = 2.0,
        default: LocationRecord = DEFAULT_LOCATION,
    ):
        self.ip_client = ip_client
        self.reverse_geocoder = reverse_geocoder
        self.timeout_seconds = timeout_seconds
        self.reverse_timeout_seconds = reverse_timeout_seconds
        self.default = default

    async def resolve_location(
        self,
        explicit_coords: Optional[Coordinate] = None,
        ip_address: Optional[str] = None,
    ) -> LocationRecord:
        if explicit_coords is not None:
            return LocationRecord(coordinates=explicit_coords, source=LocationSource.EXPLICIT)

        if self.ip_client is not None and is_public_ip(ip_address):
            try:
                found = await within_budget(
                    self.ip_client.lookup(ip_address), self.timeout_seconds, "ip-geolocation"
                )
                return LocationRecord(
                    coordinates=found.coordinates,
                    source=LocationSource.IP_GEOLOCATION,
                    city=found.place.city,
                    region=found.place.region,
                    country=found.place.country,
                )
            except CollaboratorError as exc:
                log_collaborator_failure(logger, exc.collaborator, exc, source="ip")
            except Exception as exc:
                log_collaborator_failure(logger, "ip-geolocation", exc, source="ip")
        elif ip_address:
            logger.debug(f"Skipping IP geolocation for non-public address {ip_address}")

        logger.info("Using default location", extra={"source": LocationSource.DEFAULT_FALLBACK.value})
        return self.default

    async def enrich(self, location: LocationRecord) -> LocationRecord:
        """
        Fill in city/region by reverse geocoding when they are missing.
        Returns the input unchanged if the geocoder is absent or fails.
        """
        if (location.city and location.region) or self.reverse_geocoder is None:
            return location
        try:
            place = await within_budget(
                self.reverse_geocoder.reverse(location.coordinates),
                self.reverse_timeout_seconds,
                "reverse-geocode",
            )
        except CollaboratorError as exc:
            log_collaborator_failure(
                logger, exc.collaborator, exc,
                lat=location.coordinates.latitude, lng=location.coordinates.longitude,
            )
            return location
        except Exception as exc:
            log_collaborator_failure(
                logger, "reverse-geocode", exc,
                lat=location.coordinates.latitude, lng=location.coordinates.longitude,
            )
            return location

        if not (place.city or place.region):
            return location
        source = location.source
        if source == LocationSource.EXPLICIT:
            source = LocationSource.REVERSE_GEOCODE
        return location.with_place(place.city, place.region, place.country, source)
