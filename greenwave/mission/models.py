"""
Mission data model: enumerations, emergency details, the mutable Mission
aggregate and its read-only snapshot.
"""

from enum import Enum
from dataclasses import dataclass, field
from typing import Optional

from greenwave.errors import InputError
from greenwave.utils.geo_math import Coordinate
from greenwave.utils.state_machine import MissionStatus
from greenwave.utils.mission_log import LogKind, LogEntry

# Central Park, NY
BASE_LOCATION = Coordinate(40.785091, -73.968285)
# Mount Sinai
HOSPITAL_LOCATION = Coordinate(40.789125, -73.954605)

DISTANCE_PLACEHOLDER = "0.0 km"
ETA_PLACEHOLDER = "--:--"

EMERGENCY_TYPES = (
    "Cardiac Arrest",
    "Severe Trauma",
    "Stroke",
    "Organ Transport",
)


class TrafficState(Enum):
    """Signal state seen by the ambulance."""
    RED = "RED"
    YELLOW = "YELLOW"
    GREEN = "GREEN"
    GREEN_CORRIDOR_ACTIVE = "GREEN_CORRIDOR_ACTIVE"


class Severity(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    CRITICAL = "Critical"

    @classmethod
    def parse(cls, value) -> "Severity":
        """Accept a Severity or a case-insensitive name/value string."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for severity in cls:
            if text.lower() in (severity.value.lower(), severity.name.lower()):
                return severity
        raise InputError(f"Unknown severity: {value!r}")


@dataclass(frozen=True)
class Emergency:
    """Emergency configured before the mission starts."""
    type: str = "Cardiac Arrest"
    severity: Severity = Severity.CRITICAL
    patient_name: str = "John Doe"
    description: str = "Male, 55, chest pains, collapsed."

    def to_dict(self) -> dict:
        return {
            'type': self.type,
            'severity': self.severity.value,
            'patient_name': self.patient_name,
            'description': self.description
        }


@dataclass
class Mission:
    """
    Mutable mission aggregate.

    Owned by MissionController; nothing else mutates it.
    """
    status: MissionStatus = MissionStatus.IDLE
    ambulance_position: Coordinate = BASE_LOCATION
    target_position: Optional[Coordinate] = None
    distance_traveled_m: float = 0.0
    eta_seconds: Optional[float] = None
    speed_kmh: int = 0
    traffic_state: TrafficState = TrafficState.RED
    emergency: Emergency = field(default_factory=Emergency)
    route: Optional[object] = None
    corridor_engaged: bool = False
    awaiting_transport_confirmation: bool = False
    distance_display: str = DISTANCE_PLACEHOLDER
    eta_display: str = ETA_PLACEHOLDER


@dataclass(frozen=True)
class MissionSnapshot:
    """
    Read-only observation of the mission for presentation.

    sequence increases with every applied change; subscribers drop any
    snapshot older than the last one they rendered.
    """
    sequence: int
    mission_id: int
    status: MissionStatus
    ambulance_position: Coordinate
    target_position: Optional[Coordinate]
    speed: int
    distance: str
    eta: str
    traffic_state: TrafficState
    emergency: Emergency
    awaiting_transport_confirmation: bool

    def to_dict(self) -> dict:
        return {
            'sequence': self.sequence,
            'mission_id': self.mission_id,
            'status': self.status.value,
            'ambulance_position': self.ambulance_position.to_dict(),
            'target_position': self.target_position.to_dict() if self.target_position else None,
            'speed': self.speed,
            'distance': self.distance,
            'eta': self.eta,
            'traffic_state': self.traffic_state.value,
            'emergency': self.emergency.to_dict(),
            'awaiting_transport_confirmation': self.awaiting_transport_confirmation
        }


def format_distance(meters: float, precision: int = 1) -> str:
    """Distance display string, e.g. '1.4 km'."""
    return f"{meters / 1000:.{precision}f} km"


def format_eta(seconds: Optional[float]) -> str:
    """ETA display string in whole minutes, placeholder when unknown."""
    if seconds is None:
        return ETA_PLACEHOLDER
    return f"{round(seconds / 60)} min"


__all__ = [
    "BASE_LOCATION",
    "HOSPITAL_LOCATION",
    "DISTANCE_PLACEHOLDER",
    "ETA_PLACEHOLDER",
    "EMERGENCY_TYPES",
    "Coordinate",
    "MissionStatus",
    "TrafficState",
    "Severity",
    "Emergency",
    "Mission",
    "MissionSnapshot",
    "LogKind",
    "LogEntry",
    "format_distance",
    "format_eta",
]
