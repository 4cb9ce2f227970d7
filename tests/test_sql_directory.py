import asyncio
import time
from collections import Counter
from decimal import Decimal

import pytest
import sqlalchemy as sa
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from conftest import BENGALURU, offset
from carefinder.db.base import Base
from carefinder.db.models import Doctor, Hospital, HospitalSpecialty
from carefinder.directory.sql import SqlProviderDirectory
from carefinder.domain import Coordinate, LocationRecord, LocationSource, ProviderKind, SearchTier
from carefinder.services.geo import bounding_box
from carefinder.services.ranking import ProximityRankingEngine


def _seed():
    manipal = Hospital(
        id=1,
        name="Manipal Hospital",
        city="Bengaluru",
        state="Karnataka",
        latitude=Decimal("12.958800"),
        longitude=Decimal("77.648300"),
        rating=Decimal("4.5"),
        emergency_services=True,
        specialties=[HospitalSpecialty(name="Cardiology"), HospitalSpecialty(name="Neurology")],
    )
    clinic = Hospital(id=2, name="Jayanagar Clinic", city="Bangalore Urban", state="Karnataka", type="clinic")
    jss = Hospital(
        id=3,
        name="JSS Hospital",
        city="Mysuru",
        state="Karnataka",
        latitude=Decimal("12.295800"),
        longitude=Decimal("76.639400"),
        specialties=[HospitalSpecialty(name="Orthopedics")],
    )
    doctors = [
        Doctor(id=1, name="Dr. Iyer", specialization="Cardiology", hospital=manipal, rating=Decimal("4.8")),
        Doctor(
            id=2,
            name="Dr. Shah",
            specialization="Dermatology",
            city="Mysuru",
            state="Karnataka",
            latitude=Decimal("12.310000"),
            longitude=Decimal("76.650000"),
        ),
        Doctor(id=3, name="Dr. Menon", specialization="Pediatrics"),
    ]
    return [manipal, clinic, jss, *doctors]


@pytest.fixture()
def database_url(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'directory.db'}"

    async def setup():
        engine = create_async_engine(url)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        sessions = async_sessionmaker(engine, expire_on_commit=False)
        async with sessions() as session:
            session.add_all(_seed())
            await session.commit()
        await engine.dispose()

    asyncio.run(setup())
    return url


def _query(database_url, kind, call):
    async def scenario():
        engine = create_async_engine(database_url)
        try:
            async with async_sessionmaker(engine)() as session:
                return await call(SqlProviderDirectory(session, kind))
        finally:
            await engine.dispose()

    return asyncio.run(scenario())


def test_city_query_matches_aliases_and_substrings(database_url):
    records = _query(database_url, ProviderKind.HOSPITAL, lambda d: d.query_by_city("Bengaluru"))
    assert [r.id for r in records] == ["1", "2"]
    assert records[0].specialties == {"Cardiology", "Neurology"}
    assert records[0].coordinates == Coordinate(12.9588, 77.6483)
    assert records[1].coordinates is None
    assert records[1].raw["type"] == "clinic"


def test_region_query(database_url):
    records = _query(database_url, ProviderKind.HOSPITAL, lambda d: d.query_by_region("karnataka"))
    assert [r.id for r in records] == ["1", "2", "3"]


def test_coordinate_query_respects_bounding_box(database_url):
    box = bounding_box(BENGALURU, 20)
    records = _query(database_url, ProviderKind.HOSPITAL, lambda d: d.query_with_coordinates(box))
    assert [r.id for r in records] == ["1"]

    everything = _query(database_url, ProviderKind.HOSPITAL, lambda d: d.query_with_coordinates())
    assert [r.id for r in everything] == ["1", "3"]


def test_doctor_inherits_hospital_location(database_url):
    records = _query(database_url, ProviderKind.DOCTOR, lambda d: d.query_by_city("Bangalore"))
    assert [r.id for r in records] == ["1"]
    iyer = records[0]
    assert iyer.city == "Bengaluru"
    assert iyer.coordinates == Coordinate(12.9588, 77.6483)
    assert iyer.specialties == {"Cardiology"}
    assert iyer.raw["hospital"] == {"id": "1", "name": "Manipal Hospital"}
    assert iyer.raw["rating"] == 4.8


def test_doctor_coordinate_query_uses_own_or_hospital_coordinates(database_url):
    records = _query(database_url, ProviderKind.DOCTOR, lambda d: d.query_with_coordinates())
    assert [r.id for r in records] == ["1", "2"]

    box = bounding_box(Coordinate(12.3, 76.64), 10)
    nearby = _query(database_url, ProviderKind.DOCTOR, lambda d: d.query_with_coordinates(box))
    assert [r.id for r in nearby] == ["2"]


def test_find_by_id(database_url):
    found = _query(database_url, ProviderKind.HOSPITAL, lambda d: d.find_by_id("3"))
    assert found.name == "JSS Hospital"
    assert _query(database_url, ProviderKind.HOSPITAL, lambda d: d.find_by_id("999")) is None
    assert _query(database_url, ProviderKind.DOCTOR, lambda d: d.find_by_id("not-a-number")) is None


def test_max_rows_caps_results(database_url):
    async def call(directory):
        directory.max_rows = 1
        return await directory.query_by_region("Karnataka")

    assert [r.id for r in _query(database_url, ProviderKind.HOSPITAL, call)] == ["1"]


def _hospital(hid, coordinates, city="Hoskote"):
    return Hospital(
        id=hid,
        name=f"Hospital {hid}",
        city=city,
        state="Karnataka",
        latitude=Decimal(str(round(coordinates.latitude, 6))),
        longitude=Decimal(str(round(coordinates.longitude, 6))),
    )


def _database(tmp_path, rows):
    url = f"sqlite+aiosqlite:///{tmp_path / 'search.db'}"

    async def setup():
        engine = create_async_engine(url)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with async_sessionmaker(engine, expire_on_commit=False)() as session:
            session.add_all(rows)
            await session.commit()
        await engine.dispose()

    asyncio.run(setup())
    return url


def _search(url, make_directory, location, tier_timeout_seconds=2.5, **kwargs):
    async def scenario():
        engine = create_async_engine(url)

        @event.listens_for(engine.sync_engine, "connect")
        def register_slow(dbapi_connection, connection_record):
            dbapi_connection.create_function("slow", 0, lambda: time.sleep(1.0) or 1)

        try:
            async with async_sessionmaker(engine)() as session:
                directory = make_directory(session)
                ranking = ProximityRankingEngine(directory, tier_timeout_seconds=tier_timeout_seconds)
                return directory, await ranking.find_nearby(location, **kwargs)
        finally:
            await engine.dispose()

    return asyncio.run(scenario())


class SlowCitySqlDirectory(SqlProviderDirectory):
    async def query_by_city(self, city):
        await self.session.execute(sa.text("SELECT slow()"))
        return await super().query_by_city(city)


class CountingSqlDirectory(SqlProviderDirectory):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = Counter()

    async def query_by_city(self, city):
        self.calls["city"] += 1
        return await super().query_by_city(city)

    async def query_by_region(self, region):
        self.calls["region"] += 1
        return await super().query_by_region(region)

    async def query_with_coordinates(self, bbox=None, near=None):
        self.calls["coordinates"] += 1
        return await super().query_with_coordinates(bbox, near)


def _at_bengaluru(city=None, region=None):
    return LocationRecord(coordinates=BENGALURU, source=LocationSource.EXPLICIT, city=city, region=region)


def test_search_recovers_after_city_query_times_out(tmp_path):
    url = _database(tmp_path, [_hospital(1, offset(BENGALURU, north_km=1))])

    _, outcome = _search(
        url,
        lambda session: SlowCitySqlDirectory(session, ProviderKind.HOSPITAL),
        _at_bengaluru(city="Bengaluru"),
        tier_timeout_seconds=0.25,
        radius_km=10,
    )

    assert outcome.tiers_failed == [SearchTier.CITY_EXACT]
    assert outcome.tiers_run == [SearchTier.CITY_EXACT, SearchTier.COORDINATE_SCAN]
    assert [r.provider.id for r in outcome.results] == ["1"]


def test_capped_coordinate_query_returns_nearest_rows(tmp_path):
    rows = [
        _hospital(1, offset(BENGALURU, north_km=8)),
        _hospital(2, offset(BENGALURU, north_km=6)),
        _hospital(3, offset(BENGALURU, north_km=1)),
    ]
    url = _database(tmp_path, rows)

    async def call(directory):
        directory.max_rows = 2
        return await directory.query_with_coordinates(bounding_box(BENGALURU, 10), near=BENGALURU)

    assert [r.id for r in _query(url, ProviderKind.HOSPITAL, call)] == ["3", "2"]

    _, outcome = _search(
        url,
        lambda session: SqlProviderDirectory(session, ProviderKind.HOSPITAL, max_rows=2),
        _at_bengaluru(),
        radius_km=10,
        limit=1,
    )
    assert [r.provider.id for r in outcome.results] == ["3"]


def test_full_city_tier_skips_region_and_coordinate_queries(tmp_path):
    rows = [_hospital(i, offset(BENGALURU, east_km=i), city="Bengaluru") for i in range(1, 4)]
    url = _database(tmp_path, rows)

    directory, outcome = _search(
        url,
        lambda session: CountingSqlDirectory(session, ProviderKind.HOSPITAL),
        _at_bengaluru(city="Bengaluru", region="Karnataka"),
        radius_km=10,
        limit=2,
    )

    assert [r.provider.id for r in outcome.results] == ["1", "2"]
    assert directory.calls == Counter({"city": 1})
    assert outcome.search_method == SearchTier.CITY_EXACT
