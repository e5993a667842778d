"""Great-circle radius search over latitude/longitude columns."""
from __future__ import annotations

import math

from sqlalchemy.orm import Session

# Earth radius in miles; distances in the API are miles.
EARTH_RADIUS_MI = 3963.0


def radius_in_radians(distance_miles: float) -> float:
    return float(distance_miles) / EARTH_RADIUS_MI


def central_angle(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine central angle between two points, in radians."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bounding_box(lat: float, lng: float, radius_rad: float) -> tuple[float, float, float | None, float | None]:
    """Degree box enclosing the spherical cap; longitude bounds are None when the cap wraps."""
    dlat = math.degrees(radius_rad)
    min_lat, max_lat = lat - dlat, lat + dlat
    if min_lat <= -90 or max_lat >= 90:
        return max(min_lat, -90.0), min(max_lat, 90.0), None, None
    dlng = math.degrees(math.asin(max(-1.0, min(1.0, math.sin(radius_rad) / math.cos(math.radians(lat))))))
    min_lng, max_lng = lng - dlng, lng + dlng
    if min_lng < -180 or max_lng > 180:
        return min_lat, max_lat, None, None
    return min_lat, max_lat, min_lng, max_lng


def find_within_radius(db: Session, model, lat: float, lng: float, radius_rad: float) -> list:
    """Rows of ``model`` whose ``latitude``/``longitude`` lie inside the spherical cap."""
    min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, radius_rad)
    q = db.query(model).filter(
        model.latitude.is_not(None),
        model.longitude.is_not(None),
        model.latitude >= min_lat,
        model.latitude <= max_lat,
    )
    if min_lng is not None:
        q = q.filter(model.longitude >= min_lng, model.longitude <= max_lng)
    return [
        row
        for row in q.order_by(model.name).all()
        if central_angle(lat, lng, row.latitude, row.longitude) <= radius_rad
    ]
