# Intelligence - Route and Analysis Providers
"""
External collaborators consulted by the mission controller.

Modules:
    - route_provider: Route type, OSRM and direct-line providers
    - analysis_provider: Emergency tactical analysis providers
"""

from .route_provider import (
    Route,
    RouteProvider,
    OsrmRouteProvider,
    DirectLineRouteProvider,
    create_route_provider
)
from .analysis_provider import (
    AnalysisProvider,
    TemplateAnalysisProvider,
    HttpAnalysisProvider,
    create_analysis_provider
)

__all__ = [
    "Route",
    "RouteProvider",
    "OsrmRouteProvider",
    "DirectLineRouteProvider",
    "create_route_provider",
    "AnalysisProvider",
    "TemplateAnalysisProvider",
    "HttpAnalysisProvider",
    "create_analysis_provider"
]
