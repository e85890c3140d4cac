"""
GeoMath - Geospatial Calculations

Provides the Coordinate value type and utilities for calculating distances,
projected and interpolated positions for ambulance navigation.
"""

import math
import random
from dataclasses import dataclass
from typing import Tuple, Optional

from greenwave.errors import InvalidCoordinateError

# Earth's radius in meters
EARTH_RADIUS_M = 6371000.0


def validate_lat_lng(lat: float, lng: float) -> Tuple[float, float]:
    """
    Validate a latitude/longitude pair.

    Args:
        lat: Latitude (degrees), numeric or numeric string
        lng: Longitude (degrees), numeric or numeric string

    Returns:
        Tuple of (lat, lng) as floats

    Raises:
        InvalidCoordinateError: If either value is not numeric, not finite
            or outside the valid range
    """
    try:
        lat_f = float(lat)
        lng_f = float(lng)
    except (TypeError, ValueError):
        raise InvalidCoordinateError(f"Non-numeric coordinates: {lat!r}, {lng!r}")

    if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
        raise InvalidCoordinateError(f"Non-finite coordinates: {lat_f}, {lng_f}")
    if not -90.0 <= lat_f <= 90.0:
        raise InvalidCoordinateError(f"Latitude out of range: {lat_f}")
    if not -180.0 <= lng_f <= 180.0:
        raise InvalidCoordinateError(f"Longitude out of range: {lng_f}")

    return lat_f, lng_f


@dataclass(frozen=True)
class Coordinate:
    """Immutable lat/lng position in degrees."""
    lat: float
    lng: float

    def __post_init__(self):
        lat, lng = validate_lat_lng(self.lat, self.lng)
        object.__setattr__(self, 'lat', lat)
        object.__setattr__(self, 'lng', lng)

    def to_dict(self) -> dict:
        return {'lat': self.lat, 'lng': self.lng}

    def __str__(self) -> str:
        return f"{self.lat:.4f}, {self.lng:.4f}"


def haversine_distance(lat1: float, lon1: float,
                       lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Uses the Haversine formula for accurate short-distance calculations.

    Args:
        lat1: Latitude of point 1 (degrees)
        lon1: Longitude of point 1 (degrees)
        lat2: Latitude of point 2 (degrees)
        lon2: Longitude of point 2 (degrees)

    Returns:
        Distance in meters
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (math.sin(delta_lat / 2) ** 2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) *
         math.sin(delta_lon / 2) ** 2)
    # Clamp rounding noise so identical points give exactly 0
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


def distance_between(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two Coordinates in meters."""
    return haversine_distance(a.lat, a.lng, b.lat, b.lng)


def destination_point(lat: float, lon: float,
                      bearing_deg: float, distance: float) -> Tuple[float, float]:
    """
    Calculate destination point given start point, bearing and distance.

    Args:
        lat: Starting latitude (degrees)
        lon: Starting longitude (degrees)
        bearing_deg: Bearing in degrees (0-360)
        distance: Distance in meters

    Returns:
        Tuple of (latitude, longitude) for destination point
    """
    lat_rad = math.radians(lat)
    lon_rad = math.radians(lon)
    bearing_rad = math.radians(bearing_deg)

    angular_distance = distance / EARTH_RADIUS_M

    lat2 = math.asin(
        math.sin(lat_rad) * math.cos(angular_distance) +
        math.cos(lat_rad) * math.sin(angular_distance) * math.cos(bearing_rad)
    )

    lon2 = lon_rad + math.atan2(
        math.sin(bearing_rad) * math.sin(angular_distance) * math.cos(lat_rad),
        math.cos(angular_distance) - math.sin(lat_rad) * math.sin(lat2)
    )

    # Normalize longitude to -180..180
    lon2_deg = (math.degrees(lon2) + 540.0) % 360.0 - 180.0
    return (math.degrees(lat2), lon2_deg)


def interpolate(a: Coordinate, b: Coordinate, fraction: float) -> Coordinate:
    """
    Linear interpolation between two nearby Coordinates.

    Adequate for city-scale legs where the planar approximation error is
    far below the arrival threshold.
    """
    fraction = min(1.0, max(0.0, fraction))
    return Coordinate(
        a.lat + (b.lat - a.lat) * fraction,
        a.lng + (b.lng - a.lng) * fraction
    )


def is_within_radius(center: Coordinate, point: Coordinate, radius: float) -> bool:
    """Check if point is within a radius (meters) of center."""
    return distance_between(center, point) <= radius


def random_point_within(origin: Coordinate, radius: float,
                        rng: Optional[random.Random] = None) -> Coordinate:
    """
    Pick a uniformly distributed random point within a radius of origin.

    Args:
        origin: Center of the disc
        radius: Radius in meters
        rng: Random source (module-level random if omitted)

    Returns:
        Coordinate no further than radius from origin
    """
    if not math.isfinite(radius) or radius < 0:
        raise ValueError(f"Radius must be a non-negative finite number: {radius}")

    rng = rng or random
    # sqrt keeps the density uniform over the disc area
    distance = radius * math.sqrt(rng.random())
    heading = rng.uniform(0.0, 360.0)

    lat, lng = destination_point(origin.lat, origin.lng, heading, distance)
    return Coordinate(lat, lng)
