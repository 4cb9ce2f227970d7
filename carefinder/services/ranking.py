"""
Proximity ranking engine.

Searches one provider directory in three tiers (city text match, region text
match, coordinate scan), stopping as soon as ``limit`` results are accepted.
Each tier runs under its own time budget. A tier that times out or fails
contributes nothing; the directory is reset before the next tier runs.
Providers matched by text but lacking coordinates get a fixed estimated
distance for their tier.
"""

from __future__ import annotations

import enum
import math
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from carefinder.config import Settings
from carefinder.directory.base import ProviderDirectory
from carefinder.domain import LocationRecord, ProviderKind, ProviderRecord, RankedResult, SearchTier
from carefinder.errors import CollaboratorError, InputError, within_budget
from carefinder.logging_config import get_logger, log_collaborator_failure, log_performance
from carefinder.services.geo import bounding_box, distance_km
from carefinder.services.specialties import specialty_matches

logger = get_logger(__name__)

TIER_ORDER = (SearchTier.CITY_EXACT, SearchTier.REGION_FALLBACK, SearchTier.COORDINATE_SCAN)


class SpecialtyPolicy(str, enum.Enum):
    # drop the filter when it would leave the answer empty
    PREFER = "prefer"
    # keep the filter even if nothing matches
    STRICT = "strict"


@dataclass
class SearchOutcome:
    results: List[RankedResult]
    search_method: Optional[SearchTier]
    tiers_run: List[SearchTier] = field(default_factory=list)
    tiers_failed: List[SearchTier] = field(default_factory=list)
    specialty_relaxed: bool = False

    @property
    def count(self) -> int:
        return len(self.results)


def validate_search_params(radius_km: float, limit: int) -> None:
    if isinstance(radius_km, bool) or not isinstance(radius_km, (int, float)):
        raise InputError(f"radius must be a number, got {radius_km!r}")
    if not math.isfinite(radius_km) or radius_km <= 0:
        raise InputError(f"radius must be a positive number of kilometres, got {radius_km}")
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InputError(f"limit must be an integer, got {limit!r}")
    if limit <= 0:
        raise InputError(f"limit must be positive, got {limit}")


class ProximityRankingEngine:
    def __init__(
        self,
        directory: ProviderDirectory,
        kind: ProviderKind = ProviderKind.HOSPITAL,
        tier_timeout_seconds: float = 2.5,
        city_estimate_km: float = 5.0,
        region_estimate_km: float = 25.0,
        specialty_policy: SpecialtyPolicy = SpecialtyPolicy.PREFER,
    ):
        self.directory = directory
        self.kind = kind
        self.tier_timeout_seconds = tier_timeout_seconds
        self.city_estimate_km = city_estimate_km
        self.region_estimate_km = region_estimate_km
        self.specialty_policy = specialty_policy

    @classmethod
    def from_settings(cls, directory: ProviderDirectory, settings: Settings, kind: ProviderKind) -> "ProximityRankingEngine":
        return cls(
            directory,
            kind=kind,
            tier_timeout_seconds=settings.tier_timeout_seconds,
            city_estimate_km=settings.city_estimate_km,
            region_estimate_km=settings.region_estimate_km,
            specialty_policy=SpecialtyPolicy.STRICT if settings.strict_specialty_filter else SpecialtyPolicy.PREFER,
        )

    def plan(self, location: LocationRecord) -> List[SearchTier]:
        tiers = []
        if location.city:
            tiers.append(SearchTier.CITY_EXACT)
        if location.region:
            tiers.append(SearchTier.REGION_FALLBACK)
        tiers.append(SearchTier.COORDINATE_SCAN)
        return tiers

    async def find_nearby(
        self,
        location: LocationRecord,
        radius_km: float,
        specialties: Optional[Iterable[str]] = None,
        limit: int = 10,
    ) -> SearchOutcome:
        validate_search_params(radius_km, limit)
        wanted = frozenset(s.strip() for s in (specialties or ()) if s and s.strip())
        started = time.perf_counter()

        seen = set()
        # every candidate inside the radius, in tier order, before specialty filtering
        in_radius: List[Tuple[RankedResult, SearchTier]] = []
        accepted: Dict[str, Tuple[RankedResult, SearchTier]] = {}
        tiers_run: List[SearchTier] = []
        tiers_failed: List[SearchTier] = []

        for tier in self.plan(location):
            if len(accepted) >= limit:
                break
            tiers_run.append(tier)
            records = await self._run_tier(tier, location, radius_km)
            if records is None:
                tiers_failed.append(tier)
                continue

            for record in records:
                if record.id in seen:
                    continue
                candidate = self._annotate(record, tier, location)
                if candidate is None:
                    continue
                seen.add(record.id)
                if candidate.distance_km > radius_km:
                    continue
                in_radius.append((candidate, tier))
                if not wanted or specialty_matches(record.specialties, wanted):
                    accepted[record.id] = (candidate, tier)

            logger.debug(
                f"Tier {tier.value} returned {len(records)} rows, {len(accepted)} accepted so far",
                extra={"tier": tier.value, "provider_kind": self.kind.value, "count": len(accepted)},
            )

        specialty_relaxed = False
        if wanted and not accepted and in_radius and self.specialty_policy == SpecialtyPolicy.PREFER:
            logger.info(
                f"No {self.kind.value} matches {sorted(wanted)}; returning unfiltered results",
                extra={"provider_kind": self.kind.value},
            )
            accepted = {candidate.provider.id: (candidate, tier) for candidate, tier in in_radius}
            specialty_relaxed = True

        ranked = sorted(accepted.values(), key=lambda item: item[0].sort_key)[:limit]
        results = [candidate for candidate, _ in ranked]

        if ranked:
            search_method = max((tier for _, tier in ranked), key=TIER_ORDER.index)
        else:
            search_method = tiers_run[-1] if tiers_run else None

        log_performance(
            logger,
            f"find_nearby[{self.kind.value}]",
            (time.perf_counter() - started) * 1000,
            provider_kind=self.kind.value,
            count=len(results),
            radius_km=radius_km,
            tier=search_method.value if search_method else None,
        )
        return SearchOutcome(
            results=results,
            search_method=search_method,
            tiers_run=tiers_run,
            tiers_failed=tiers_failed,
            specialty_relaxed=specialty_relaxed,
        )

    async def _run_tier(
        self, tier: SearchTier, location: LocationRecord, radius_km: float
    ) -> Optional[List[ProviderRecord]]:
        """Query the directory for one tier; None when the tier timed out or failed."""
        collaborator = f"{self.kind.value}-directory"
        try:
            if tier == SearchTier.CITY_EXACT:
                query = self.directory.query_by_city(location.city)
            elif tier == SearchTier.REGION_FALLBACK:
                query = self.directory.query_by_region(location.region)
            else:
                query = self.directory.query_with_coordinates(
                    bounding_box(location.coordinates, radius_km), near=location.coordinates
                )
            return list(await within_budget(query, self.tier_timeout_seconds, collaborator))
        except CollaboratorError as exc:
            log_collaborator_failure(logger, exc.collaborator, exc, tier=tier.value, provider_kind=self.kind.value)
        except Exception as exc:
            log_collaborator_failure(logger, collaborator, exc, tier=tier.value, provider_kind=self.kind.value)
        await self._reset_directory(tier, collaborator)
        return None

    async def _reset_directory(self, tier: SearchTier, collaborator: str) -> None:
        """Let the next tier run on a usable directory after this one failed."""
        try:
            await self.directory.reset()
        except Exception as exc:
            log_collaborator_failure(logger, collaborator, exc, tier=tier.value, operation="reset")

    def _annotate(self, record: ProviderRecord, tier: SearchTier, location: LocationRecord) -> Optional[RankedResult]:
        if record.coordinates is not None:
            return RankedResult(record, distance_km(location.coordinates, record.coordinates), False)
        if tier == SearchTier.CITY_EXACT:
            return RankedResult(record, self.city_estimate_km, True)
        if tier == SearchTier.REGION_FALLBACK:
            return RankedResult(record, self.region_estimate_km, True)
        # the coordinate scan cannot place a provider without coordinates
        return None
