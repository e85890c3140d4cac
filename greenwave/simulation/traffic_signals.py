"""
TrafficSignalSimulator - Simulated Intersection Signals

Emits RED/YELLOW/GREEN signal changes on its own clock while a driving
leg is active. Corridor preemption is decided by the mission controller,
not here.
"""

import random
import logging
import threading
from typing import Optional, Callable, Dict

from greenwave.mission.events import MissionEvent, SignalChanged
from greenwave.mission.models import TrafficState

logger = logging.getLogger(__name__)

AMBIENT_STATES = (TrafficState.RED, TrafficState.YELLOW, TrafficState.GREEN)


class TrafficSignalSimulator:
    """
    Weighted pseudo-random signal source.

    Only changes are emitted: drawing the same state twice in a row
    produces no event.
    """

    def __init__(self, emit: Callable[[MissionEvent], None], config: dict = None,
                 rng: Optional[random.Random] = None, threaded: bool = True):
        """
        Initialize TrafficSignalSimulator.

        Args:
            emit: Callback receiving SignalChanged events
            config: 'signals' configuration section
            rng: Random source
            threaded: Run on a background thread; when False the owner
                calls tick() directly
        """
        self.emit = emit
        self.config = config or {}
        self.rng = rng or random.Random()
        self.threaded = threaded

        self.interval = self.config.get('interval', 3.0)
        self.weights = self._parse_weights(self.config.get('weights'))

        self.mission_id = 0
        self.leg_id = 0
        self.last_state: Optional[TrafficState] = None
        self.is_active = False
        self.changes_emitted = 0

        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @staticmethod
    def _parse_weights(weights: Optional[Dict[str, float]]) -> Dict[TrafficState, float]:
        weights = weights or {'RED': 0.2, 'YELLOW': 0.2, 'GREEN': 0.6}
        parsed = {TrafficState[name.upper()]: float(w) for name, w in weights.items()}
        for state in parsed:
            if state not in AMBIENT_STATES:
                raise ValueError(f"Signal simulator cannot emit {state.value}")
        if sum(parsed.values()) <= 0:
            raise ValueError("Signal weights must sum to a positive value")
        return parsed

    def start(self, mission_id: int, leg_id: int,
              initial_state: Optional[TrafficState] = None):
        """
        Begin emitting for a leg.

        Args:
            mission_id: Mission the leg belongs to
            leg_id: Leg identifier stamped on every event
            initial_state: Signal state already in effect (not re-emitted)
        """
        self.stop()

        self.mission_id = mission_id
        self.leg_id = leg_id
        self.last_state = initial_state if initial_state in AMBIENT_STATES else None
        self.is_active = True

        logger.info(f"Traffic signal simulator started for leg {leg_id}")

        if self.threaded:
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(self._stop_event,),
                daemon=True,
                name=f"TrafficSignals-{leg_id}"
            )
            self._thread.start()

    def stop(self):
        """Stop emitting."""
        was_active = self.is_active
        self.is_active = False
        self._stop_event.set()

        thread = self._thread
        self._thread = None
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=2.0)

        if was_active:
            logger.info(f"Traffic signal simulator stopped for leg {self.leg_id}")

    def next_state(self) -> TrafficState:
        """Draw the next signal state."""
        states = list(self.weights.keys())
        return self.rng.choices(states, weights=[self.weights[s] for s in states], k=1)[0]

    def tick(self) -> Optional[TrafficState]:
        """
        Evaluate the signal once.

        Returns:
            The emitted state, or None if nothing changed or inactive
        """
        if not self.is_active:
            return None

        state = self.next_state()
        if state == self.last_state:
            return None

        self.last_state = state
        self.changes_emitted += 1
        logger.debug(f"Signal change on leg {self.leg_id}: {state.value}")
        self.emit(SignalChanged(self.mission_id, self.leg_id, state))
        return state

    def _run_loop(self, stop_event: threading.Event):
        """Signal loop for threaded mode."""
        while not stop_event.wait(self.interval):
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Signal tick error: {e}")
                break
