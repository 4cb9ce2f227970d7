from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from carefinder.api.deps import get_doctor_directory, get_hospital_directory
from carefinder.directory.base import ProviderDirectory
from carefinder.schemas.providers import ProviderDetail
from carefinder.schemas.search import SpecialtyMapping
from carefinder.services.formatter import format_provider
from carefinder.services.specialties import SPECIALTY_TABLE_VERSION, map_conditions_to_specialties


router = APIRouter(tags=["providers"])


@router.get("/providers/hospitals/{provider_id}", response_model=ProviderDetail)
async def get_hospital(
    provider_id: str,
    directory: ProviderDirectory = Depends(get_hospital_directory),
):
    record = await directory.find_by_id(provider_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Hospital not found")
    return format_provider(record)


@router.get("/providers/doctors/{provider_id}", response_model=ProviderDetail)
async def get_doctor(
    provider_id: str,
    directory: ProviderDirectory = Depends(get_doctor_directory),
):
    record = await directory.find_by_id(provider_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Doctor not found")
    return format_provider(record)


@router.get("/specialties/map", response_model=SpecialtyMapping)
async def map_specialties(
    condition: Optional[List[str]] = Query(None, description="Condition or symptom text, repeatable"),
) -> SpecialtyMapping:
    conditions = condition or []
    return SpecialtyMapping(
        conditions=conditions,
        specialties=sorted(map_conditions_to_specialties(conditions)),
        table_version=SPECIALTY_TABLE_VERSION,
    )
