# Mission - Dispatch State Machine
"""
Mission data model, events and the dispatch state machine.

The controller lives in greenwave.mission.controller and is imported from
there; the simulators depend on the models and events defined here.
"""

from .models import (
    BASE_LOCATION,
    HOSPITAL_LOCATION,
    Coordinate,
    MissionStatus,
    TrafficState,
    Severity,
    Emergency,
    Mission,
    MissionSnapshot,
    LogKind,
    LogEntry
)
from .events import (
    MissionEvent,
    RouteComputed,
    AnalysisReady,
    AnalysisFailed,
    PositionTick,
    Arrived,
    SignalChanged,
    CompletionAcknowledged
)

__all__ = [
    "BASE_LOCATION",
    "HOSPITAL_LOCATION",
    "Coordinate",
    "MissionStatus",
    "TrafficState",
    "Severity",
    "Emergency",
    "Mission",
    "MissionSnapshot",
    "LogKind",
    "LogEntry",
    "MissionEvent",
    "RouteComputed",
    "AnalysisReady",
    "AnalysisFailed",
    "PositionTick",
    "Arrived",
    "SignalChanged",
    "CompletionAcknowledged"
]
