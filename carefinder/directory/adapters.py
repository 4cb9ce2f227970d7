"""
Normalisation of heterogeneous provider shapes into ProviderRecord.

Provider data arrives as ORM rows or as loose documents (directory exports,
seed files) whose specialties may be nested objects or plain strings and whose
coordinates may be missing, zeroed, or stored as GeoJSON ``[lng, lat]`` points.
"""

from decimal import Decimal
from typing import Any, Dict, Iterable, Mapping, Optional

from carefinder.db.models import Doctor, Hospital
from carefinder.domain import Coordinate, ProviderRecord


def _num(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_specialties(value: Any) -> frozenset:
    """
    Accepts None, a string ("Cardiology; Neurology"), a list of strings, or a
    list of ``{"name": ...}`` objects.
    """
    if value is None:
        return frozenset()
    if isinstance(value, str):
        items: Iterable[Any] = value.replace(",", ";").split(";")
    elif isinstance(value, Mapping):
        items = [value]
    else:
        items = value

    names = set()
    for item in items:
        if isinstance(item, Mapping):
            item = item.get("name") or item.get("specialization")
        name = _text(item)
        if name:
            names.add(name)
    return frozenset(names)


def coordinate_from(latitude: Any, longitude: Any) -> Optional[Coordinate]:
    """Coordinate from loose values; (0, 0) is treated as a missing placeholder."""
    latitude, longitude = _num(latitude), _num(longitude)
    if latitude in (None, "") or longitude in (None, ""):
        return None
    point = Coordinate.parse(latitude, longitude)
    if point is None or (point.latitude == 0.0 and point.longitude == 0.0):
        return None
    return point


def coordinate_from_document(value: Any) -> Optional[Coordinate]:
    """``{"lat", "lng"}``, ``{"latitude", "longitude"}`` or GeoJSON ``{"coordinates": [lng, lat]}``."""
    if not isinstance(value, Mapping):
        return None
    if "lat" in value or "lng" in value:
        return coordinate_from(value.get("lat"), value.get("lng"))
    if "latitude" in value or "longitude" in value:
        return coordinate_from(value.get("latitude"), value.get("longitude"))
    points = value.get("coordinates")
    if isinstance(points, (list, tuple)) and len(points) == 2:
        return coordinate_from(points[1], points[0])
    if isinstance(points, Mapping):
        return coordinate_from_document(points)
    return None


def record_from_document(doc: Mapping[str, Any]) -> ProviderRecord:
    """Build a record from a hospital or doctor document (export/seed shape)."""
    location = doc.get("location") or {}
    specialties = set(normalize_specialties(doc.get("specialties")))
    specialties |= normalize_specialties(doc.get("specialization"))

    passthrough = {
        k: v
        for k, v in doc.items()
        if k not in ("_id", "id", "name", "location", "specialties")
    }
    for key in ("address", "country", "pincode"):
        if location.get(key) is not None:
            passthrough[key] = location[key]

    return ProviderRecord(
        id=str(doc.get("_id") or doc.get("id")),
        name=_text(doc.get("name")) or "Unnamed provider",
        coordinates=coordinate_from_document(location.get("coordinates")) or coordinate_from_document(location),
        city=_text(location.get("city")),
        region=_text(location.get("state") or location.get("region")),
        specialties=frozenset(specialties),
        raw=passthrough,
    )


def hospital_to_record(h: Hospital) -> ProviderRecord:
    raw: Dict[str, Any] = {
        "type": h.type,
        "description": h.description,
        "address": h.address,
        "country": h.country,
        "pincode": h.pincode,
        "contact": {"phone": h.phone, "email": h.email, "website": h.website},
        "rating": _num(h.rating),
        "emergencyServices": h.emergency_services,
    }
    return ProviderRecord(
        id=str(h.id),
        name=h.name,
        coordinates=coordinate_from(h.latitude, h.longitude),
        city=_text(h.city),
        region=_text(h.state),
        specialties=normalize_specialties([s.name for s in h.specialties]),
        raw=raw,
    )


def doctor_to_record(d: Doctor) -> ProviderRecord:
    hospital = d.hospital
    coordinates = coordinate_from(d.latitude, d.longitude)
    if coordinates is None and hospital is not None:
        coordinates = coordinate_from(hospital.latitude, hospital.longitude)

    raw: Dict[str, Any] = {
        "specialization": d.specialization,
        "designation": d.designation,
        "experienceYears": d.experience_years,
        "rating": _num(d.rating),
        "consultationFee": _num(d.consultation_fee),
        "hospital": {"id": str(hospital.id), "name": hospital.name} if hospital is not None else None,
    }
    return ProviderRecord(
        id=str(d.id),
        name=d.name,
        coordinates=coordinates,
        city=_text(d.city) or (_text(hospital.city) if hospital is not None else None),
        region=_text(d.state) or (_text(hospital.state) if hospital is not None else None),
        specialties=normalize_specialties(d.specialization),
        raw=raw,
    )
