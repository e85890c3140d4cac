"""
RouteProvider - Road Route Computation

Computes the path between two coordinates as ordered waypoints with
cumulative distances. The OSRM provider queries a routing server over
HTTP; the direct-line provider interpolates a straight path and is used
offline and as the fallback when the server is unavailable.
"""

import logging
from typing import List, Sequence, Optional

import numpy as np
import requests

from greenwave.errors import RouteProviderError, InvalidCoordinateError
from greenwave.utils.geo_math import Coordinate, haversine_distance, interpolate

logger = logging.getLogger(__name__)


class Route:
    """
    Ordered waypoints with cumulative distances along the path.

    Positions along the route are linearly interpolated between
    consecutive waypoints.
    """

    def __init__(self, waypoints: Sequence[Coordinate],
                 total_time_s: Optional[float] = None,
                 total_distance_m: Optional[float] = None,
                 average_speed_kmh: float = 40.0):
        """
        Initialize Route.

        Args:
            waypoints: At least two coordinates, origin first
            total_time_s: Travel time reported by the provider
            total_distance_m: Distance reported by the provider (defaults
                to the summed segment lengths)
            average_speed_kmh: Speed used to estimate time when not given
        """
        if len(waypoints) < 2:
            raise RouteProviderError("Route needs at least two waypoints")

        self.waypoints: List[Coordinate] = list(waypoints)

        lats = np.array([p.lat for p in self.waypoints])
        lngs = np.array([p.lng for p in self.waypoints])
        segments = np.array([
            haversine_distance(lats[i], lngs[i], lats[i + 1], lngs[i + 1])
            for i in range(len(self.waypoints) - 1)
        ])
        self.cumulative_m = np.concatenate(([0.0], np.cumsum(segments)))
        self.path_length_m = float(self.cumulative_m[-1])

        self.total_distance_m = float(total_distance_m) if total_distance_m is not None else self.path_length_m
        if total_time_s is None:
            total_time_s = self.total_distance_m / (average_speed_kmh / 3.6)
        self.total_time_s = float(total_time_s)

    @property
    def origin(self) -> Coordinate:
        return self.waypoints[0]

    @property
    def destination(self) -> Coordinate:
        return self.waypoints[-1]

    def position_at(self, distance_m: float) -> Coordinate:
        """
        Interpolated position after travelling distance_m along the path.

        Distances are clamped to the path length.
        """
        if distance_m <= 0:
            return self.origin
        if distance_m >= self.path_length_m:
            return self.destination

        idx = int(np.searchsorted(self.cumulative_m, distance_m, side='right')) - 1
        idx = min(idx, len(self.waypoints) - 2)
        seg_start = self.cumulative_m[idx]
        seg_len = self.cumulative_m[idx + 1] - seg_start
        fraction = (distance_m - seg_start) / seg_len if seg_len > 0 else 1.0
        return interpolate(self.waypoints[idx], self.waypoints[idx + 1], fraction)

    def remaining_m(self, distance_m: float) -> float:
        return max(0.0, self.path_length_m - distance_m)

    def __len__(self) -> int:
        return len(self.waypoints)

    def __repr__(self) -> str:
        return (f"Route({len(self.waypoints)} waypoints, "
                f"{self.total_distance_m:.0f} m, {self.total_time_s:.0f} s)")


class RouteProvider:
    """Route provider interface."""

    def compute_route(self, origin: Coordinate, destination: Coordinate) -> Route:
        """
        Compute a route between two coordinates.

        Raises:
            RouteProviderError: If no route can be produced
        """
        raise NotImplementedError


class DirectLineRouteProvider(RouteProvider):
    """Straight-line route interpolated between origin and destination."""

    def __init__(self, config: dict = None):
        self.config = config or {}
        self.average_speed_kmh = self.config.get('average_speed_kmh', 40.0)
        self.points = max(2, int(self.config.get('fallback_points', 20)))

    def compute_route(self, origin: Coordinate, destination: Coordinate) -> Route:
        waypoints = [
            interpolate(origin, destination, i / (self.points - 1))
            for i in range(self.points)
        ]
        route = Route(waypoints, average_speed_kmh=self.average_speed_kmh)
        logger.debug(f"Direct-line route: {route}")
        return route


class OsrmRouteProvider(RouteProvider):
    """
    Road routing via an OSRM-compatible HTTP server.

    OSRM expects coordinates as longitude,latitude and returns GeoJSON
    geometry in the same order.
    """

    def __init__(self, config: dict = None, session: requests.Session = None):
        """
        Initialize OsrmRouteProvider.

        Args:
            config: 'routing' configuration section
            session: Optional requests session (for connection reuse/tests)
        """
        self.config = config or {}
        self.base_url = self.config.get('base_url', 'https://router.project-osrm.org').rstrip('/')
        self.profile = self.config.get('profile', 'driving')
        self.timeout = self.config.get('timeout', 10.0)
        self.session = session or requests.Session()

    def compute_route(self, origin: Coordinate, destination: Coordinate) -> Route:
        url = (f"{self.base_url}/route/v1/{self.profile}/"
               f"{origin.lng},{origin.lat};{destination.lng},{destination.lat}")
        params = {'overview': 'full', 'geometries': 'geojson'}

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise RouteProviderError("OSRM request timed out")
        except requests.exceptions.RequestException as e:
            raise RouteProviderError(f"OSRM request error: {e}")

        if response.status_code != 200:
            raise RouteProviderError(f"OSRM HTTP error: {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            raise RouteProviderError("OSRM returned invalid JSON")

        if data.get('code') != 'Ok' or not data.get('routes'):
            raise RouteProviderError(f"No route found: {data.get('code')}")

        best = data['routes'][0]
        try:
            coords = best['geometry']['coordinates']
            waypoints = [Coordinate(lat, lng) for lng, lat in coords]
            route = Route(
                waypoints,
                total_time_s=best.get('duration'),
                total_distance_m=best.get('distance')
            )
        except (KeyError, TypeError, ValueError, InvalidCoordinateError) as e:
            raise RouteProviderError(f"Malformed OSRM route: {e}")

        logger.info(f"Route fetched: {len(route)} points, "
                    f"{route.total_distance_m / 1000:.1f} km, {route.total_time_s / 60:.1f} min")
        return route


def create_route_provider(config: dict = None) -> RouteProvider:
    """Build the provider named by routing.provider."""
    config = config or {}
    name = config.get('provider', 'osrm')
    if name == 'direct':
        return DirectLineRouteProvider(config)
    if name == 'osrm':
        return OsrmRouteProvider(config)
    raise ValueError(f"Unknown route provider: {name}")
