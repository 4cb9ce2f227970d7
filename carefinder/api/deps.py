from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from carefinder.config import Settings, get_settings
from carefinder.db.session import get_db_session
from carefinder.directory.base import ProviderDirectory
from carefinder.directory.sql import SqlProviderDirectory
from carefinder.domain import ProviderKind
from carefinder.services.cache import TTLCache
from carefinder.services.geoclients import IpGeolocationClient, ReverseGeocoder
from carefinder.services.location import LocationResolver
from carefinder.services.ranking import ProximityRankingEngine


@lru_cache(maxsize=1)
def get_geocode_cache() -> TTLCache:
    settings = get_settings()
    return TTLCache(maxsize=settings.geocode_cache_size, ttl_seconds=settings.geocode_cache_ttl_seconds)


@lru_cache(maxsize=1)
def get_location_resolver() -> LocationResolver:
    settings = get_settings()
    cache = get_geocode_cache()
    return LocationResolver(
        ip_client=IpGeolocationClient(
            settings.ip_geolocation_url,
            timeout=settings.location_timeout_seconds,
            user_agent=settings.geocoder_user_agent,
            cache=cache,
        ),
        reverse_geocoder=ReverseGeocoder(
            settings.reverse_geocode_url,
            timeout=settings.reverse_geocode_timeout_seconds,
            user_agent=settings.geocoder_user_agent,
            cache=cache,
        ),
        timeout_seconds=settings.location_timeout_seconds,
        reverse_timeout_seconds=settings.reverse_geocode_timeout_seconds,
    )


def get_hospital_directory(
    session: AsyncSession = Depends(get_db_session), settings: Settings = Depends(get_settings)
) -> ProviderDirectory:
    return SqlProviderDirectory(session, ProviderKind.HOSPITAL, max_rows=settings.directory_max_rows)


def get_doctor_directory(
    session: AsyncSession = Depends(get_db_session), settings: Settings = Depends(get_settings)
) -> ProviderDirectory:
    return SqlProviderDirectory(session, ProviderKind.DOCTOR, max_rows=settings.directory_max_rows)


def get_hospital_engine(
    directory: ProviderDirectory = Depends(get_hospital_directory), settings: Settings = Depends(get_settings)
) -> ProximityRankingEngine:
    return ProximityRankingEngine.from_settings(directory, settings, ProviderKind.HOSPITAL)


def get_doctor_engine(
    directory: ProviderDirectory = Depends(get_doctor_directory), settings: Settings = Depends(get_settings)
) -> ProximityRankingEngine:
    return ProximityRankingEngine.from_settings(directory, settings, ProviderKind.DOCTOR)


def client_ip(request: Request, trust_forwarded_for: Optional[bool] = None) -> Optional[str]:
    """
    Address used for IP geolocation.

    X-Forwarded-For is client-controlled, so its first entry is only used when
    the service runs behind a trusted proxy and TRUST_FORWARDED_FOR is set.
    Otherwise the socket peer is used.
    """
    if trust_forwarded_for is None:
        trust_forwarded_for = get_settings().trust_forwarded_for
    forwarded = request.headers.get("x-forwarded-for") if trust_forwarded_for else None
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else None
