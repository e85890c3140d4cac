"""
StateMachine - Mission Status Tracking

Provides the mission status enumeration and a transition table with
validation, bounded history and change callbacks.
"""

import time
import logging
from enum import Enum
from typing import Optional, Callable, Dict, List, Set
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class MissionStatus(Enum):
    """
    Mission status for an ambulance run.

    Exactly one status is active at a time and it decides which
    simulators may run.
    """
    IDLE = "IDLE"                           # Available, no mission
    CALCULATING = "CALCULATING"             # Target chosen, preparing leg
    ENROUTE_PATIENT = "ENROUTE_PATIENT"     # Driving to the patient
    AT_PATIENT = "AT_PATIENT"               # Waiting for transport confirmation
    ENROUTE_HOSPITAL = "ENROUTE_HOSPITAL"   # Driving to the hospital
    COMPLETED = "COMPLETED"                 # Patient handed over


ENROUTE_STATUSES = frozenset({MissionStatus.ENROUTE_PATIENT, MissionStatus.ENROUTE_HOSPITAL})


@dataclass
class StateTransition:
    """Record of a status transition."""
    from_state: MissionStatus
    to_state: MissionStatus
    timestamp: float
    reason: str


class StateMachine:
    """
    Mission status machine with transition validation and callbacks.

    Every status may fall back to IDLE (operator abort); all other edges
    follow the dispatch cycle.
    """

    VALID_TRANSITIONS: Dict[MissionStatus, Set[MissionStatus]] = {
        MissionStatus.IDLE: {
            MissionStatus.CALCULATING
        },
        MissionStatus.CALCULATING: {
            MissionStatus.ENROUTE_PATIENT,
            MissionStatus.IDLE
        },
        MissionStatus.ENROUTE_PATIENT: {
            MissionStatus.AT_PATIENT,
            MissionStatus.IDLE
        },
        MissionStatus.AT_PATIENT: {
            MissionStatus.ENROUTE_HOSPITAL,
            MissionStatus.IDLE
        },
        MissionStatus.ENROUTE_HOSPITAL: {
            MissionStatus.COMPLETED,
            MissionStatus.IDLE
        },
        MissionStatus.COMPLETED: {
            MissionStatus.IDLE
        }
    }

    def __init__(self, initial_state: MissionStatus = MissionStatus.IDLE,
                 max_history: int = 100):
        """
        Initialize StateMachine.

        Args:
            initial_state: Initial mission status
            max_history: Number of transitions kept in history
        """
        self.current_state = initial_state
        self.previous_state: Optional[MissionStatus] = None

        self.history: List[StateTransition] = []
        self.max_history = max_history

        self.on_state_change: Optional[Callable[[MissionStatus, MissionStatus, str], None]] = None

        logger.debug(f"StateMachine initialized in {initial_state.value} state")

    def transition_to(self, new_state: MissionStatus, reason: str = "") -> bool:
        """
        Attempt to transition to a new status.

        Args:
            new_state: Target status
            reason: Reason for transition (for logging)

        Returns:
            True if transition successful, False if invalid
        """
        if not self.can_transition_to(new_state):
            logger.warning(f"Invalid transition: {self.current_state.value} -> {new_state.value}")
            return False

        transition = StateTransition(
            from_state=self.current_state,
            to_state=new_state,
            timestamp=time.time(),
            reason=reason
        )

        self.history.append(transition)
        if len(self.history) > self.max_history:
            self.history.pop(0)

        self.previous_state = self.current_state
        self.current_state = new_state

        logger.info(f"Status transition: {self.previous_state.value} -> {new_state.value}"
                    + (f" ({reason})" if reason else ""))

        if self.on_state_change:
            try:
                self.on_state_change(self.previous_state, new_state, reason)
            except Exception as e:
                logger.error(f"State change callback error: {e}")

        return True

    def get_state(self) -> MissionStatus:
        """Get current status."""
        return self.current_state

    def is_enroute(self) -> bool:
        """Check if a driving leg is active."""
        return self.current_state in ENROUTE_STATUSES

    def can_transition_to(self, state: MissionStatus) -> bool:
        """Check if transition to given status is valid."""
        return state in self.VALID_TRANSITIONS.get(self.current_state, set())

    def get_history(self, last_n: int = None) -> List[StateTransition]:
        """
        Get transition history.

        Args:
            last_n: Optional limit on number of entries

        Returns:
            List of StateTransition objects
        """
        if last_n:
            return self.history[-last_n:]
        return self.history.copy()

    def status_sequence(self) -> List[MissionStatus]:
        """Statuses entered, in order, according to the recorded history."""
        return [t.to_state for t in self.history]
