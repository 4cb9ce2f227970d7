import asyncio
import csv
import json
import os
import re
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from carefinder.config import get_settings
from carefinder.db.models import Doctor, Hospital, HospitalSpecialty
from carefinder.db.session import dispose_engine, get_session_maker
from carefinder.directory.adapters import normalize_specialties, record_from_document
from carefinder.errors import CollaboratorError
from carefinder.logging_config import get_logger, setup_logging
from carefinder.services.geoclients import ForwardGeocoder


HOSPITALS_CSV_PATH = os.getenv("HOSPITALS_CSV", "data/hospitals.csv")
DOCTORS_CSV_PATH = os.getenv("DOCTORS_CSV", "data/doctors.csv")
HOSPITALS_JSON_PATH = os.getenv("HOSPITALS_JSON", "data/hospitals.json")
GEOCODE_MISSING = os.getenv("ETL_GEOCODE", "true").strip().lower() in ("1", "true", "yes", "on")
# Nominatim usage policy: at most one request per second
GEOCODE_INTERVAL_SECONDS = 1.0

logger = get_logger(__name__)


def first_nonempty(row: dict, keys: list[str]) -> Optional[str]:
    for k in keys:
        v = row.get(k)
        if v is None:
            continue
        s = str(v).strip()
        if s != "":
            return s
    return None


def clean_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    s = re.sub(r"[^0-9.\-]", "", str(value).replace(",", ""))
    if s == "":
        return None
    try:
        return Decimal(s)
    except InvalidOperation:
        return None


def clean_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    digits = re.sub(r"[^0-9]", "", str(value))
    return int(digits) if digits else None


def clean_bool(value: Any) -> Optional[bool]:
    if value is None or str(value).strip() == "":
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "y")


def clean_coordinates(latitude: Any, longitude: Any) -> Tuple[Optional[Decimal], Optional[Decimal]]:
    lat, lng = clean_decimal(latitude), clean_decimal(longitude)
    if lat is None or lng is None:
        return None, None
    # (0, 0) is how older exports mark "not geocoded"
    if lat == 0 and lng == 0:
        return None, None
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        return None, None
    return lat, lng


def hospital_row(row: dict) -> Optional[Dict[str, Any]]:
    """Column values for one hospital CSV row, or None when name/city are missing."""
    name = first_nonempty(row, ["name", "hospital_name"])
    city = first_nonempty(row, ["city"])
    if not name or not city:
        return None
    lat, lng = clean_coordinates(row.get("latitude"), row.get("longitude"))
    rating = clean_decimal(row.get("rating"))
    return {
        "name": name,
        "description": first_nonempty(row, ["description"]),
        "type": (first_nonempty(row, ["type"]) or "private").lower(),
        "address": first_nonempty(row, ["address"]),
        "city": city,
        "state": first_nonempty(row, ["state"]),
        "country": first_nonempty(row, ["country"]) or "India",
        "pincode": first_nonempty(row, ["pincode", "zip"]),
        "latitude": lat,
        "longitude": lng,
        "phone": first_nonempty(row, ["phone"]),
        "email": first_nonempty(row, ["email"]),
        "website": first_nonempty(row, ["website"]),
        "rating": rating if rating is not None and 0 <= rating <= 5 else None,
        "emergency_services": clean_bool(row.get("emergency_services")),
        "specialties": sorted(normalize_specialties(row.get("specialties"))),
    }


def hospital_row_from_document(doc: dict) -> Optional[Dict[str, Any]]:
    """Same shape as hospital_row, from an exported hospital document."""
    record = record_from_document(doc)
    if record.name == "Unnamed provider" or not record.city:
        return None
    contact = record.raw.get("contact") or {}
    row = {
        "name": record.name,
        "description": record.raw.get("description"),
        "type": record.raw.get("type"),
        "address": record.raw.get("address"),
        "city": record.city,
        "state": record.region,
        "country": record.raw.get("country"),
        "pincode": record.raw.get("pincode"),
        "latitude": record.coordinates.latitude if record.coordinates else None,
        "longitude": record.coordinates.longitude if record.coordinates else None,
        "phone": contact.get("phone"),
        "email": contact.get("email"),
        "website": contact.get("website"),
        "rating": record.raw.get("rating"),
        "emergency_services": record.raw.get("emergencyServices"),
    }
    result = hospital_row(row)
    if result is not None:
        result["specialties"] = sorted(record.specialties)
    return result


def doctor_row(row: dict) -> Optional[Dict[str, Any]]:
    name = first_nonempty(row, ["name", "doctor_name"])
    specialization = first_nonempty(row, ["specialization", "specialty"])
    if not name or not specialization:
        return None
    lat, lng = clean_coordinates(row.get("latitude"), row.get("longitude"))
    rating = clean_decimal(row.get("rating"))
    return {
        "name": name,
        "specialization": specialization,
        "designation": first_nonempty(row, ["designation"]),
        "experience_years": clean_int(row.get("experience_years")),
        "rating": rating if rating is not None and 0 <= rating <= 5 else None,
        "consultation_fee": clean_decimal(row.get("consultation_fee")),
        "city": first_nonempty(row, ["city"]),
        "state": first_nonempty(row, ["state"]),
        "latitude": lat,
        "longitude": lng,
        "hospital_name": first_nonempty(row, ["hospital_name", "hospital"]),
    }


def read_csv(path: str) -> List[dict]:
    if not Path(path).exists():
        logger.info(f"CSV not found at {path}; skipping", extra={"source": path})
        return []
    with open(path, newline="", encoding="utf-8-sig", errors="replace") as f:
        return list(csv.DictReader(f))


def read_documents(path: str) -> List[dict]:
    if not Path(path).exists():
        return []
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return data if isinstance(data, list) else [data]


async def geocode_missing(rows: List[Dict[str, Any]], geocoder: ForwardGeocoder) -> int:
    """Fill coordinates for hospitals without them from their address; returns how many were filled."""
    filled = 0
    first = True
    for row in rows:
        if row["latitude"] is not None:
            continue
        if not first:
            await asyncio.sleep(GEOCODE_INTERVAL_SECONDS)
        first = False

        query = ", ".join(p for p in (row.get("address"), row["city"], row.get("state"), row.get("country")) if p)
        try:
            match = await geocoder.search(query, country_codes="in" if row.get("country") == "India" else None)
        except CollaboratorError as e:
            logger.warning(f"Geocoding failed for {row['name']}: {e}", extra={"collaborator": e.collaborator})
            continue
        if match is None:
            continue
        row["latitude"] = Decimal(str(round(match.coordinates.latitude, 6)))
        row["longitude"] = Decimal(str(round(match.coordinates.longitude, 6)))
        filled += 1
    return filled


async def load_hospitals(session: AsyncSession, rows: List[Dict[str, Any]]) -> Dict[str, int]:
    """Insert hospitals not already present (matched on name and city); returns name -> id."""
    result = await session.execute(sa.select(Hospital.id, Hospital.name, Hospital.city))
    existing = {(name.lower(), city.lower()): hid for hid, name, city in result.all()}
    ids_by_name = {name.lower(): hid for (name, _), hid in existing.items()}

    for row in rows:
        values = {k: v for k, v in row.items() if k != "specialties"}
        key = (row["name"].lower(), row["city"].lower())
        hospital_id = existing.get(key)
        if hospital_id is None:
            inserted = await session.execute(pg_insert(Hospital).values(**values).returning(Hospital.id))
            hospital_id = inserted.scalar_one()
            existing[key] = hospital_id
        ids_by_name[row["name"].lower()] = hospital_id

        if row["specialties"]:
            stmt = (
                pg_insert(HospitalSpecialty)
                .values([{"hospital_id": hospital_id, "name": s} for s in row["specialties"]])
                .on_conflict_do_nothing(constraint="uq_hospital_specialties_name")
            )
            await session.execute(stmt)
    return ids_by_name


async def load_doctors(session: AsyncSession, rows: List[Dict[str, Any]], hospital_ids: Dict[str, int]) -> int:
    loaded = 0
    for row in rows:
        values = {k: v for k, v in row.items() if k != "hospital_name"}
        hospital_name = row.get("hospital_name")
        values["hospital_id"] = hospital_ids.get(hospital_name.lower()) if hospital_name else None
        if hospital_name and values["hospital_id"] is None:
            logger.info(f"Unknown hospital {hospital_name!r} for doctor {row['name']}")

        exists = await session.execute(
            sa.select(Doctor.id).where(
                Doctor.name == values["name"],
                Doctor.specialization == values["specialization"],
                Doctor.hospital_id.is_(None) if values["hospital_id"] is None else Doctor.hospital_id == values["hospital_id"],
            )
        )
        if exists.first() is not None:
            continue
        await session.execute(pg_insert(Doctor).values(**values))
        loaded += 1
    return loaded


async def run_etl() -> None:
    settings = get_settings()
    setup_logging(settings.log_level, json_format=settings.log_json)

    hospitals = [r for r in (hospital_row(row) for row in read_csv(HOSPITALS_CSV_PATH)) if r is not None]
    hospitals += [r for r in (hospital_row_from_document(d) for d in read_documents(HOSPITALS_JSON_PATH)) if r is not None]
    doctors = [r for r in (doctor_row(row) for row in read_csv(DOCTORS_CSV_PATH)) if r is not None]

    if GEOCODE_MISSING:
        geocoder = ForwardGeocoder(
            settings.forward_geocode_url,
            timeout=settings.location_timeout_seconds,
            user_agent=settings.geocoder_user_agent,
        )
        filled = await geocode_missing(hospitals, geocoder)
        logger.info(f"Geocoded {filled} hospitals", extra={"count": filled, "operation": "geocode"})

    async with get_session_maker()() as session:
        hospital_ids = await load_hospitals(session, hospitals)
        loaded_doctors = await load_doctors(session, doctors, hospital_ids)
        await session.commit()
    await dispose_engine()

    logger.info(
        f"ETL completed: {len(hospitals)} hospitals, {loaded_doctors} new doctors",
        extra={"count": len(hospitals) + loaded_doctors, "operation": "etl"},
    )


if __name__ == "__main__":
    asyncio.run(run_etl())
