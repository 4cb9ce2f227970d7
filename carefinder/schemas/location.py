from typing import Optional

from pydantic import Field

from .providers import CamelModel


class UserLocation(CamelModel):
    lat: float
    lng: float
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    source: str


class CurrentLocationResponse(CamelModel):
    location: UserLocation
    message: Optional[str] = None


class ReverseGeocodeRequest(CamelModel):
    lat: float = Field(..., description="Latitude in degrees")
    lng: float = Field(..., description="Longitude in degrees")
