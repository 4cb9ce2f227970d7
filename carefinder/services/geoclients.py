"""
HTTP clients for the external geo collaborators (IP geolocation, reverse and
forward geocoding). Each raises CollaboratorTimeout / CollaboratorFailure; the
location resolver decides how to degrade.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from carefinder.domain import Coordinate
from carefinder.errors import CollaboratorFailure, CollaboratorTimeout
from carefinder.logging_config import get_logger
from carefinder.services.cache import TTLCache

logger = get_logger(__name__)


@dataclass(frozen=True)
class Place:
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None


@dataclass(frozen=True)
class GeoLookup:
    coordinates: Coordinate
    place: Place


class _HttpCollaborator:
    name = "http"

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        user_agent: str = "CareFinder/1.0",
        client: Optional[httpx.AsyncClient] = None,
        cache: Optional[TTLCache] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.user_agent = user_agent
        self._client = client
        self.cache = cache

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        headers = {"User-Agent": self.user_agent}
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params, headers=headers)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as exc:
            raise CollaboratorTimeout(f"{self.name} timed out: {exc}", self.name, 408) from exc
        except httpx.HTTPStatusError as exc:
            raise CollaboratorFailure(
                f"{self.name} returned HTTP {exc.response.status_code}", self.name, exc.response.status_code
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise CollaboratorFailure(f"{self.name} request failed: {exc}", self.name) from exc


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class IpGeolocationClient(_HttpCollaborator):
    """ipapi.co-style lookup: GET {base}/{ip}/json/"""

    name = "ip-geolocation"

    async def lookup(self, ip: str) -> GeoLookup:
        if self.cache is not None:
            hit = self.cache.get(("ip", ip))
            if hit is not None:
                return hit

        data = await self._get_json(f"{self.base_url}/{ip}/json/")
        if not isinstance(data, dict):
            raise CollaboratorFailure("Unexpected geolocation payload", self.name)
        if data.get("error"):
            raise CollaboratorFailure(f"IP API error: {data.get('reason', 'unknown')}", self.name)

        coordinates = Coordinate.parse(data.get("latitude"), data.get("longitude"))
        if coordinates is None:
            raise CollaboratorFailure("Geolocation payload has no usable coordinates", self.name)

        result = GeoLookup(
            coordinates=coordinates,
            place=Place(
                city=_clean(data.get("city")),
                region=_clean(data.get("region")),
                country=_clean(data.get("country_name") or data.get("country")),
            ),
        )
        if self.cache is not None:
            self.cache.set(("ip", ip), result)
        return result


def _place_from_nominatim(address: Dict[str, Any]) -> Place:
    return Place(
        city=_clean(
            address.get("city") or address.get("town") or address.get("village") or address.get("state_district")
        ),
        region=_clean(address.get("state")),
        country=_clean(address.get("country")),
    )


class ReverseGeocoder(_HttpCollaborator):
    """Nominatim /reverse: coordinates to city/state/country."""

    name = "reverse-geocode"

    async def reverse(self, point: Coordinate) -> Place:
        key = ("reverse", round(point.latitude, 4), round(point.longitude, 4))
        if self.cache is not None:
            hit = self.cache.get(key)
            if hit is not None:
                return hit

        data = await self._get_json(
            self.base_url,
            params={"lat": point.latitude, "lon": point.longitude, "format": "json", "addressdetails": 1},
        )
        address = data.get("address") if isinstance(data, dict) else None
        if not address:
            raise CollaboratorFailure("Reverse geocoder returned no address", self.name)

        place = _place_from_nominatim(address)
        if self.cache is not None:
            self.cache.set(key, place)
        return place


class ForwardGeocoder(_HttpCollaborator):
    """Nominatim /search: free-text address to coordinates. Used when seeding the directory."""

    name = "forward-geocode"

    async def search(self, query: str, country_codes: Optional[str] = None) -> Optional[GeoLookup]:
        key = ("search", query.strip().lower(), country_codes)
        if self.cache is not None and key in self.cache:
            return self.cache.get(key)

        params: Dict[str, Any] = {"q": query, "format": "json", "addressdetails": 1, "limit": 1}
        if country_codes:
            params["countrycodes"] = country_codes
        data = await self._get_json(self.base_url, params=params)

        result = None
        if isinstance(data, list) and data:
            first = data[0]
            coordinates = Coordinate.parse(first.get("lat"), first.get("lon"))
            if coordinates is not None:
                result = GeoLookup(coordinates=coordinates, place=_place_from_nominatim(first.get("address") or {}))
        if result is None:
            logger.info(f"No geocoding match for {query!r}")

        if self.cache is not None:
            self.cache.set(key, result)
        return result
