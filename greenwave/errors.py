"""
Error taxonomy for GreenWave Dispatch.

Input errors are rejected at the intent boundary, provider failures are
logged and degraded around. Neither is ever fatal to a mission.
"""


class GreenWaveError(Exception):
    """Base class for all GreenWave errors."""


class InputError(GreenWaveError, ValueError):
    """Operator input could not be parsed or is out of range."""


class InvalidCoordinateError(InputError):
    """Latitude/longitude pair is non-numeric, non-finite or out of range."""


class ProviderFailure(GreenWaveError):
    """An external collaborator failed or timed out."""


class RouteProviderError(ProviderFailure):
    """Route computation failed."""


class AnalysisProviderError(ProviderFailure):
    """Emergency analysis request failed."""
