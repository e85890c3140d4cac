"""
Events posted into the mission event queue.

Every event carries the mission id and leg id it was produced for so the
controller can discard results that arrive after an abort or a leg change.
"""

from dataclasses import dataclass
from typing import Optional

from greenwave.utils.geo_math import Coordinate


@dataclass(frozen=True)
class MissionEvent:
    """Base event tagged with the mission/leg it belongs to."""
    mission_id: int
    leg_id: int


@dataclass(frozen=True)
class RouteComputed(MissionEvent):
    route: object
    fallback: bool = False
    failure: Optional[str] = None


@dataclass(frozen=True)
class AnalysisReady(MissionEvent):
    text: str


@dataclass(frozen=True)
class AnalysisFailed(MissionEvent):
    reason: str


@dataclass(frozen=True)
class PositionTick(MissionEvent):
    position: Coordinate
    distance_traveled_m: float


@dataclass(frozen=True)
class Arrived(MissionEvent):
    position: Coordinate


@dataclass(frozen=True)
class SignalChanged(MissionEvent):
    state: object


@dataclass(frozen=True)
class CompletionAcknowledged(MissionEvent):
    pass
