# Utilities - Helper Functions
"""
Utility modules for geospatial calculations and mission bookkeeping.

Modules:
    - geo_math: Coordinate type, distance and placement calculations
    - state_machine: Mission status transition table
    - mission_log: Append-only narration log
    - config: YAML configuration loading
"""

from .geo_math import Coordinate, haversine_distance, distance_between, is_within_radius, random_point_within
from .state_machine import MissionStatus, StateMachine
from .mission_log import LogKind, LogEntry, MissionLog

__all__ = [
    "Coordinate",
    "haversine_distance",
    "distance_between",
    "is_within_radius",
    "random_point_within",
    "MissionStatus",
    "StateMachine",
    "LogKind",
    "LogEntry",
    "MissionLog"
]
