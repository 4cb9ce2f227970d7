from typing import Optional

from fastapi import APIRouter, Depends, Request

from carefinder.api.deps import client_ip, get_location_resolver
from carefinder.domain import Coordinate, LocationRecord, LocationSource
from carefinder.errors import InputError
from carefinder.schemas.location import CurrentLocationResponse, ReverseGeocodeRequest, UserLocation
from carefinder.services.location import LocationResolver


router = APIRouter(prefix="/location", tags=["location"])


def user_location(location: LocationRecord) -> UserLocation:
    return UserLocation(
        lat=location.coordinates.latitude,
        lng=location.coordinates.longitude,
        city=location.city,
        region=location.region,
        country=location.country,
        source=location.source.value,
    )


async def locate(
    request: Request,
    resolver: LocationResolver,
    lat: Optional[float],
    lng: Optional[float],
) -> LocationRecord:
    """Explicit coordinates when both are given, else the client IP; then city/region enrichment."""
    if (lat is None) != (lng is None):
        raise InputError("lat and lng must be given together")
    explicit = Coordinate(lat, lng) if lat is not None else None
    location = await resolver.resolve_location(explicit_coords=explicit, ip_address=client_ip(request))
    return await resolver.enrich(location)


@router.get("/current", response_model=CurrentLocationResponse)
async def current_location(
    request: Request,
    resolver: LocationResolver = Depends(get_location_resolver),
) -> CurrentLocationResponse:
    location = await resolver.resolve_location(ip_address=client_ip(request))
    message = None
    if location.source == LocationSource.DEFAULT_FALLBACK:
        message = "Default location used"
    return CurrentLocationResponse(location=user_location(location), message=message)


@router.post("/reverse-geocode", response_model=CurrentLocationResponse)
async def reverse_geocode(
    req: ReverseGeocodeRequest,
    resolver: LocationResolver = Depends(get_location_resolver),
) -> CurrentLocationResponse:
    location = await resolver.resolve_location(explicit_coords=Coordinate(req.lat, req.lng))
    enriched = await resolver.enrich(location)
    message = None
    if not enriched.has_place:
        message = "Address details unavailable for these coordinates"
    return CurrentLocationResponse(location=user_location(enriched), message=message)
