import math
from typing import Any, List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from carefinder.db.models import Doctor, Hospital
from carefinder.directory.adapters import doctor_to_record, hospital_to_record
from carefinder.domain import BoundingBox, Coordinate, ProviderKind, ProviderRecord
from carefinder.services.places import city_variants, normalize_place


class SqlProviderDirectory:
    """
    Provider directory backed by the hospitals/doctors tables.

    Doctors take city, state and coordinates from their hospital when their
    own are missing, so the three text/coordinate expressions below are
    coalesced for that kind.
    """

    def __init__(self, session: AsyncSession, kind: ProviderKind, max_rows: int = 500):
        self.session = session
        self.kind = kind
        self.max_rows = max_rows

    def _base(self) -> sa.Select:
        if self.kind == ProviderKind.HOSPITAL:
            return sa.select(Hospital).options(selectinload(Hospital.specialties))
        return (
            sa.select(Doctor)
            .outerjoin(Hospital, Doctor.hospital_id == Hospital.id)
            .options(selectinload(Doctor.hospital))
        )

    def _city(self) -> Any:
        if self.kind == ProviderKind.HOSPITAL:
            return Hospital.city
        return sa.func.coalesce(Doctor.city, Hospital.city)

    def _state(self) -> Any:
        if self.kind == ProviderKind.HOSPITAL:
            return Hospital.state
        return sa.func.coalesce(Doctor.state, Hospital.state)

    def _lat_lng(self) -> tuple:
        if self.kind == ProviderKind.HOSPITAL:
            return Hospital.latitude, Hospital.longitude
        own = sa.and_(Doctor.latitude.is_not(None), Doctor.longitude.is_not(None))
        return (
            sa.case((own, Doctor.latitude), else_=Hospital.latitude),
            sa.case((own, Doctor.longitude), else_=Hospital.longitude),
        )

    def _order(self) -> Any:
        return Hospital.id if self.kind == ProviderKind.HOSPITAL else Doctor.id

    def _to_record(self, row: Any) -> ProviderRecord:
        if self.kind == ProviderKind.HOSPITAL:
            return hospital_to_record(row)
        return doctor_to_record(row)

    async def _fetch(self, *criteria: Any, order_by: Any = None) -> List[ProviderRecord]:
        stmt = self._base().where(*criteria)
        if order_by is not None:
            stmt = stmt.order_by(order_by)
        stmt = stmt.order_by(self._order()).limit(self.max_rows)
        rows = (await self.session.execute(stmt)).scalars().unique().all()
        return [self._to_record(row) for row in rows]

    async def query_by_city(self, city: str) -> List[ProviderRecord]:
        variants = city_variants(city)
        if not variants:
            return []
        column = self._city()
        return await self._fetch(sa.or_(*[column.icontains(v, autoescape=True) for v in variants]))

    async def query_by_region(self, region: str) -> List[ProviderRecord]:
        wanted = normalize_place(region)
        if not wanted:
            return []
        return await self._fetch(self._state().icontains(wanted, autoescape=True))

    async def query_with_coordinates(
        self, bbox: Optional[BoundingBox] = None, near: Optional[Coordinate] = None
    ) -> List[ProviderRecord]:
        lat, lng = self._lat_lng()
        criteria = [lat.is_not(None), lng.is_not(None)]
        if bbox is not None:
            criteria.append(lat.between(bbox.min_latitude, bbox.max_latitude))
            criteria.append(lng.between(bbox.min_longitude, bbox.max_longitude))

        order_by = None
        if near is not None:
            # Equirectangular squared distance in degrees, nearest first so that
            # max_rows drops the farthest rows
            scale = math.cos(math.radians(near.latitude))
            dlat = lat - near.latitude
            dlng = (lng - near.longitude) * scale
            order_by = dlat * dlat + dlng * dlng
        return await self._fetch(*criteria, order_by=order_by)

    async def find_by_id(self, provider_id: str) -> Optional[ProviderRecord]:
        try:
            pk = int(provider_id)
        except (TypeError, ValueError):
            return None
        rows = (await self.session.execute(self._base().where(self._order() == pk))).scalars().unique().all()
        return self._to_record(rows[0]) if rows else None

    async def reset(self) -> None:
        # A cancelled execute leaves the transaction invalid until rolled back
        await self.session.rollback()
