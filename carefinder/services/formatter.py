from typing import Iterable, List

from carefinder.domain import ProviderRecord, RankedResult
from carefinder.schemas.providers import LocationSummary, ProviderDetail, ProviderOut


def _location_summary(provider: ProviderRecord) -> LocationSummary:
    coordinates = provider.coordinates
    return LocationSummary(
        city=provider.city,
        region=provider.region,
        latitude=coordinates.latitude if coordinates is not None else None,
        longitude=coordinates.longitude if coordinates is not None else None,
    )


def format_results(results: Iterable[RankedResult]) -> List[ProviderOut]:
    output: list[ProviderOut] = []
    for r in results:
        output.append(
            ProviderOut(
                id=r.provider.id,
                name=r.provider.name,
                distance_km=round(r.distance_km, 2),
                distance_is_estimated=r.distance_is_estimated,
                specialties=sorted(r.provider.specialties),
                location=_location_summary(r.provider),
                raw=dict(r.provider.raw),
            )
        )
    return output


def format_provider(provider: ProviderRecord) -> ProviderDetail:
    return ProviderDetail(
        id=provider.id,
        name=provider.name,
        specialties=sorted(provider.specialties),
        location=_location_summary(provider),
        raw=dict(provider.raw),
    )
