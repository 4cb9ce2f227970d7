from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LocationSummary(CamelModel):
    city: Optional[str] = None
    region: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class ProviderOut(CamelModel):
    id: str
    name: str
    distance_km: float = Field(description="Kilometres from the user, rounded to 2 decimals")
    distance_is_estimated: bool = Field(
        default=False, description="True when the provider has no coordinates and the distance is a tier estimate"
    )
    specialties: List[str] = []
    location: LocationSummary
    raw: Dict[str, Any] = {}


class ProviderDetail(CamelModel):
    id: str
    name: str
    specialties: List[str] = []
    location: LocationSummary
    raw: Dict[str, Any] = {}
