import math

from carefinder.domain import BoundingBox, Coordinate


EARTH_RADIUS_KM = 6371.0


def distance_km(a: Coordinate, b: Coordinate) -> float:
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlng = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    # rounding can push h a hair past 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))


def bounding_box(center: Coordinate, radius_km: float) -> BoundingBox:
    """
    Smallest lat/lng box guaranteed to contain every point within ``radius_km``
    of ``center`` (bounding-circle method on the haversine sphere). Near the
    poles or across the antimeridian the longitude span widens to the whole
    globe rather than wrapping.
    """
    angular = radius_km / EARTH_RADIUS_KM
    lat = math.radians(center.latitude)
    lng = math.radians(center.longitude)

    min_lat = lat - angular
    max_lat = lat + angular
    if min_lat <= -math.pi / 2 or max_lat >= math.pi / 2:
        return BoundingBox(
            max(math.degrees(min_lat), -90.0),
            min(math.degrees(max_lat), 90.0),
            -180.0,
            180.0,
        )

    dlng = math.asin(min(1.0, math.sin(angular) / math.cos(lat)))
    min_lng = lng - dlng
    max_lng = lng + dlng
    if min_lng < -math.pi or max_lng > math.pi:
        return BoundingBox(math.degrees(min_lat), math.degrees(max_lat), -180.0, 180.0)

    return BoundingBox(
        math.degrees(min_lat),
        math.degrees(max_lat),
        math.degrees(min_lng),
        math.degrees(max_lng),
    )
