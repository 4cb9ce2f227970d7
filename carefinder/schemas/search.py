from typing import Dict, List, Optional

from .location import UserLocation
from .providers import CamelModel, ProviderOut


class NearbySearchMeta(CamelModel):
    user_location: UserLocation
    search_radius: float
    count: int
    search_method: Optional[str] = None
    location_source: str
    specialties: List[str] = []
    specialty_relaxed: bool = False
    search_time_ms: float


class NearbyHospitalsResponse(NearbySearchMeta):
    hospitals: List[ProviderOut] = []


class NearbyDoctorsResponse(NearbySearchMeta):
    doctors: List[ProviderOut] = []


class HealthcareCounts(CamelModel):
    hospitals: int
    doctors: int


class NearbyHealthcareResponse(CamelModel):
    hospitals: List[ProviderOut] = []
    doctors: List[ProviderOut] = []
    user_location: UserLocation
    search_radius: float
    counts: HealthcareCounts
    search_method: Dict[str, Optional[str]] = {}
    specialty_relaxed: bool = False
    search_time_ms: float


class SpecialtyMapping(CamelModel):
    conditions: List[str]
    specialties: List[str]
    table_version: str
