import time
from typing import FrozenSet, List, Optional

from fastapi import APIRouter, Depends, Query, Request

from carefinder.api.deps import get_doctor_engine, get_hospital_engine, get_location_resolver
from carefinder.api.location import locate, user_location
from carefinder.schemas.search import (
    HealthcareCounts,
    NearbyDoctorsResponse,
    NearbyHealthcareResponse,
    NearbyHospitalsResponse,
)
from carefinder.services.formatter import format_results
from carefinder.services.location import LocationResolver
from carefinder.services.ranking import ProximityRankingEngine, validate_search_params
from carefinder.services.specialties import map_conditions_to_specialties


router = APIRouter(prefix="/location", tags=["nearby"])


def wanted_specialties(specialty: Optional[str], conditions: Optional[List[str]]) -> FrozenSet[str]:
    """
    Free-text specialty is used as given and also mapped like a condition, so
    "heart" filters on Cardiology as well as on the literal text.
    """
    wanted = set()
    if specialty and specialty.strip():
        wanted.add(specialty.strip())
        wanted |= map_conditions_to_specialties([specialty])
    if conditions:
        wanted |= map_conditions_to_specialties(conditions)
    return frozenset(wanted)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 1)


@router.get("/nearby-hospitals", response_model=NearbyHospitalsResponse)
async def nearby_hospitals(
    request: Request,
    lat: Optional[float] = Query(None, description="Latitude; the client IP is used when omitted"),
    lng: Optional[float] = Query(None, description="Longitude; the client IP is used when omitted"),
    radius: float = Query(50.0, description="Search radius in kilometres"),
    specialty: Optional[str] = Query(None, description="Specialty name or free text"),
    condition: Optional[List[str]] = Query(None, description="Condition text, repeatable"),
    limit: int = Query(10, description="Maximum number of hospitals"),
    resolver: LocationResolver = Depends(get_location_resolver),
    engine: ProximityRankingEngine = Depends(get_hospital_engine),
) -> NearbyHospitalsResponse:
    started = time.perf_counter()
    validate_search_params(radius, limit)
    location = await locate(request, resolver, lat, lng)
    wanted = wanted_specialties(specialty, condition)

    outcome = await engine.find_nearby(location, radius, wanted, limit)
    return NearbyHospitalsResponse(
        hospitals=format_results(outcome.results),
        user_location=user_location(location),
        search_radius=radius,
        count=outcome.count,
        search_method=outcome.search_method.value if outcome.search_method else None,
        location_source=location.source.value,
        specialties=sorted(wanted),
        specialty_relaxed=outcome.specialty_relaxed,
        search_time_ms=_elapsed_ms(started),
    )


@router.get("/nearby-doctors", response_model=NearbyDoctorsResponse)
async def nearby_doctors(
    request: Request,
    lat: Optional[float] = Query(None),
    lng: Optional[float] = Query(None),
    radius: float = Query(50.0, description="Search radius in kilometres"),
    specialization: Optional[str] = Query(None, description="Specialization name or free text"),
    condition: Optional[List[str]] = Query(None, description="Condition text, repeatable"),
    limit: int = Query(20, description="Maximum number of doctors"),
    resolver: LocationResolver = Depends(get_location_resolver),
    engine: ProximityRankingEngine = Depends(get_doctor_engine),
) -> NearbyDoctorsResponse:
    started = time.perf_counter()
    validate_search_params(radius, limit)
    location = await locate(request, resolver, lat, lng)
    wanted = wanted_specialties(specialization, condition)

    outcome = await engine.find_nearby(location, radius, wanted, limit)
    return NearbyDoctorsResponse(
        doctors=format_results(outcome.results),
        user_location=user_location(location),
        search_radius=radius,
        count=outcome.count,
        search_method=outcome.search_method.value if outcome.search_method else None,
        location_source=location.source.value,
        specialties=sorted(wanted),
        specialty_relaxed=outcome.specialty_relaxed,
        search_time_ms=_elapsed_ms(started),
    )


@router.get("/nearby-healthcare", response_model=NearbyHealthcareResponse)
async def nearby_healthcare(
    request: Request,
    lat: Optional[float] = Query(None),
    lng: Optional[float] = Query(None),
    radius: float = Query(50.0, description="Search radius in kilometres"),
    specialty: Optional[str] = Query(None, description="Hospital specialty filter"),
    specialization: Optional[str] = Query(None, description="Doctor specialization filter"),
    condition: Optional[List[str]] = Query(None, description="Condition text, repeatable"),
    hospital_limit: int = Query(5, alias="hospitalLimit"),
    doctor_limit: int = Query(10, alias="doctorLimit"),
    resolver: LocationResolver = Depends(get_location_resolver),
    hospital_engine: ProximityRankingEngine = Depends(get_hospital_engine),
    doctor_engine: ProximityRankingEngine = Depends(get_doctor_engine),
) -> NearbyHealthcareResponse:
    started = time.perf_counter()
    validate_search_params(radius, hospital_limit)
    validate_search_params(radius, doctor_limit)
    location = await locate(request, resolver, lat, lng)

    # sequential: both engines share the request's database session
    hospitals = await hospital_engine.find_nearby(
        location, radius, wanted_specialties(specialty, condition), hospital_limit
    )
    doctors = await doctor_engine.find_nearby(
        location, radius, wanted_specialties(specialization, condition), doctor_limit
    )

    return NearbyHealthcareResponse(
        hospitals=format_results(hospitals.results),
        doctors=format_results(doctors.results),
        user_location=user_location(location),
        search_radius=radius,
        counts=HealthcareCounts(hospitals=hospitals.count, doctors=doctors.count),
        search_method={
            "hospitals": hospitals.search_method.value if hospitals.search_method else None,
            "doctors": doctors.search_method.value if doctors.search_method else None,
        },
        specialty_relaxed=hospitals.specialty_relaxed or doctors.specialty_relaxed,
        search_time_ms=_elapsed_ms(started),
    )
