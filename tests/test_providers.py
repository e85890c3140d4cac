"""
Test Providers - Validates Route and Analysis collaborators

Tests:
1. Route cumulative distances and interpolation
2. Direct-line and OSRM route providers
3. Template and HTTP analysis providers
"""

import sys
import random
import pytest
from unittest.mock import MagicMock
from pathlib import Path

import requests

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from greenwave.errors import RouteProviderError, AnalysisProviderError
from greenwave.utils.geo_math import Coordinate, distance_between
from greenwave.intelligence.route_provider import (
    Route,
    DirectLineRouteProvider,
    OsrmRouteProvider,
    create_route_provider
)
from greenwave.intelligence.analysis_provider import (
    TemplateAnalysisProvider,
    HttpAnalysisProvider,
    create_analysis_provider
)

ORIGIN = Coordinate(40.785091, -73.968285)
HOSPITAL = Coordinate(40.789125, -73.954605)


def make_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(str(status_code))
    return response


class TestRoute:
    """Tests for the Route type."""

    def test_cumulative_distances(self):
        a = Coordinate(0.0, 0.0)
        b = Coordinate(0.0, 0.01)
        c = Coordinate(0.01, 0.01)
        route = Route([a, b, c])

        assert route.cumulative_m[0] == 0.0
        assert route.cumulative_m[1] == pytest.approx(distance_between(a, b))
        assert route.path_length_m == pytest.approx(distance_between(a, b) + distance_between(b, c))

    def test_position_at_endpoints_and_clamping(self):
        route = Route([ORIGIN, HOSPITAL])
        assert route.position_at(0) == ORIGIN
        assert route.position_at(-10) == ORIGIN
        assert route.position_at(route.path_length_m) == HOSPITAL
        assert route.position_at(route.path_length_m * 2) == HOSPITAL

    def test_position_at_second_segment(self):
        a = Coordinate(0.0, 0.0)
        b = Coordinate(0.0, 0.01)
        c = Coordinate(0.01, 0.01)
        route = Route([a, b, c])

        mid_second = route.cumulative_m[1] + (route.cumulative_m[2] - route.cumulative_m[1]) / 2
        p = route.position_at(mid_second)
        assert p.lat == pytest.approx(0.005, abs=1e-6)
        assert p.lng == pytest.approx(0.01, abs=1e-9)

    def test_time_estimated_from_average_speed(self):
        route = Route([ORIGIN, HOSPITAL], average_speed_kmh=36.0)
        assert route.total_time_s == pytest.approx(route.total_distance_m / 10.0)

    def test_reported_totals_are_kept(self):
        route = Route([ORIGIN, HOSPITAL], total_time_s=300, total_distance_m=1800)
        assert route.total_time_s == 300
        assert route.total_distance_m == 1800

    def test_requires_two_waypoints(self):
        with pytest.raises(RouteProviderError):
            Route([ORIGIN])


class TestDirectLineProvider:
    """Tests for the straight-line provider."""

    def test_route_endpoints(self):
        provider = DirectLineRouteProvider({'fallback_points': 10})
        route = provider.compute_route(ORIGIN, HOSPITAL)

        assert len(route) == 10
        assert route.origin == ORIGIN
        assert route.destination == HOSPITAL
        assert route.path_length_m == pytest.approx(distance_between(ORIGIN, HOSPITAL), rel=1e-3)

    def test_factory(self):
        assert isinstance(create_route_provider({'provider': 'direct'}), DirectLineRouteProvider)
        assert isinstance(create_route_provider({'provider': 'osrm'}), OsrmRouteProvider)
        with pytest.raises(ValueError):
            create_route_provider({'provider': 'carrier-pigeon'})


class TestOsrmProvider:
    """Tests for the OSRM HTTP provider with a mocked session."""

    @pytest.fixture
    def session(self):
        return MagicMock()

    def test_parses_route(self, session):
        session.get.return_value = make_response(200, {
            'code': 'Ok',
            'routes': [{
                'distance': 1520.4,
                'duration': 245.0,
                'geometry': {'coordinates': [
                    [ORIGIN.lng, ORIGIN.lat],
                    [-73.960, 40.787],
                    [HOSPITAL.lng, HOSPITAL.lat],
                ]}
            }]
        })
        provider = OsrmRouteProvider({'base_url': 'http://osrm.local/'}, session=session)

        route = provider.compute_route(ORIGIN, HOSPITAL)

        assert len(route) == 3
        assert route.origin == ORIGIN
        assert route.destination == HOSPITAL
        assert route.total_distance_m == pytest.approx(1520.4)
        assert route.total_time_s == pytest.approx(245.0)

        url = session.get.call_args[0][0]
        assert url.startswith("http://osrm.local/route/v1/driving/")
        assert f"{ORIGIN.lng},{ORIGIN.lat};{HOSPITAL.lng},{HOSPITAL.lat}" in url

    def test_http_error(self, session):
        session.get.return_value = make_response(503)
        provider = OsrmRouteProvider(session=session)
        with pytest.raises(RouteProviderError):
            provider.compute_route(ORIGIN, HOSPITAL)

    def test_timeout(self, session):
        session.get.side_effect = requests.exceptions.Timeout()
        provider = OsrmRouteProvider(session=session)
        with pytest.raises(RouteProviderError, match="timed out"):
            provider.compute_route(ORIGIN, HOSPITAL)

    def test_connection_error(self, session):
        session.get.side_effect = requests.exceptions.ConnectionError("refused")
        provider = OsrmRouteProvider(session=session)
        with pytest.raises(RouteProviderError):
            provider.compute_route(ORIGIN, HOSPITAL)

    def test_no_route(self, session):
        session.get.return_value = make_response(200, {'code': 'NoRoute', 'routes': []})
        provider = OsrmRouteProvider(session=session)
        with pytest.raises(RouteProviderError, match="NoRoute"):
            provider.compute_route(ORIGIN, HOSPITAL)

    def test_malformed_geometry(self, session):
        session.get.return_value = make_response(200, {
            'code': 'Ok',
            'routes': [{'distance': 10, 'duration': 5, 'geometry': {'coordinates': [[0, 0]]}}]
        })
        provider = OsrmRouteProvider(session=session)
        with pytest.raises(RouteProviderError):
            provider.compute_route(ORIGIN, HOSPITAL)


class TestAnalysisProviders:
    """Tests for analysis providers."""

    def test_template_mentions_emergency(self):
        provider = TemplateAnalysisProvider(random.Random(3))
        text = provider.analyze("Stroke", "Critical", "Heavy Congestion")
        assert "Stroke" in text
        assert "CRITICAL" in text
        assert "Heavy Congestion" in text

    def test_template_unknown_type(self):
        text = TemplateAnalysisProvider().analyze("Snake Bite", "Low", "Clear")
        assert TemplateAnalysisProvider.DEFAULT_GUIDANCE in text

    def test_http_provider_posts_payload(self):
        session = MagicMock()
        session.post.return_value = make_response(200, {'text': '  Prep defib.  '})
        provider = HttpAnalysisProvider({'endpoint': 'http://ai.local/analyze', 'api_key': 'k'},
                                        session=session)

        assert provider.analyze("Cardiac Arrest", "Critical", "Heavy Congestion") == "Prep defib."

        kwargs = session.post.call_args[1]
        assert kwargs['json'] == {
            'emergency_type': 'Cardiac Arrest',
            'severity': 'Critical',
            'context_hint': 'Heavy Congestion'
        }
        assert kwargs['headers']['Authorization'] == "Bearer k"

    def test_http_provider_failure(self):
        session = MagicMock()
        session.post.return_value = make_response(500)
        provider = HttpAnalysisProvider({'endpoint': 'http://ai.local/analyze'}, session=session)
        with pytest.raises(AnalysisProviderError):
            provider.analyze("Stroke", "Low", "Clear")

    def test_http_provider_empty_text(self):
        session = MagicMock()
        session.post.return_value = make_response(200, {'text': ''})
        provider = HttpAnalysisProvider({'endpoint': 'http://ai.local/analyze'}, session=session)
        with pytest.raises(AnalysisProviderError):
            provider.analyze("Stroke", "Low", "Clear")

    def test_http_provider_requires_endpoint(self):
        with pytest.raises(ValueError):
            HttpAnalysisProvider({})

    def test_factory(self):
        assert isinstance(create_analysis_provider({}), TemplateAnalysisProvider)
        with pytest.raises(ValueError):
            create_analysis_provider({'provider': 'oracle'})
