"""
PositionSimulator - Simulated Vehicle Movement

Advances a virtual cursor along a route on a periodic cadence, emitting
interpolated positions, cumulative distance and a single arrival signal
per leg.
"""

import logging
import threading
from typing import Optional, Callable

from greenwave.intelligence.route_provider import Route
from greenwave.mission.events import MissionEvent, PositionTick, Arrived

logger = logging.getLogger(__name__)


class PositionSimulator:
    """
    Drives the ambulance along a route.

    The step per tick follows the current speed reported by the mission,
    so a RED signal (speed 0) holds the vehicle in place.
    """

    def __init__(self, emit: Callable[[MissionEvent], None], config: dict = None,
                 threaded: bool = True):
        """
        Initialize PositionSimulator.

        Args:
            emit: Callback receiving PositionTick/Arrived events
            config: 'simulation' configuration section
            threaded: Run ticks on a background thread; when False the
                owner calls tick() directly
        """
        self.emit = emit
        self.config = config or {}
        self.threaded = threaded

        self.tick_interval = self.config.get('tick_interval', 0.5)
        self.time_scale = self.config.get('time_scale', 10.0)
        self.arrival_threshold_m = self.config.get('arrival_threshold_m', 25.0)

        # Leg state
        self.route: Optional[Route] = None
        self.mission_id = 0
        self.leg_id = 0
        self.distance_m = 0.0
        self.speed_source: Callable[[], float] = lambda: 0.0
        self.is_active = False
        self.ticks = 0

        # Threading
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def start(self, route: Route, mission_id: int, leg_id: int,
              speed_source: Callable[[], float]):
        """
        Begin a new leg with the cursor at the start of the route.

        Args:
            route: Route to follow
            mission_id: Mission the leg belongs to
            leg_id: Leg identifier stamped on every event
            speed_source: Returns the current speed in km/h
        """
        self.stop()

        self.route = route
        self.mission_id = mission_id
        self.leg_id = leg_id
        self.speed_source = speed_source
        self.distance_m = 0.0
        self.ticks = 0
        self.is_active = True

        logger.info(f"Position simulator started for leg {leg_id}: {route}")

        if self.threaded:
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(self._stop_event,),
                daemon=True,
                name=f"PositionSimulator-{leg_id}"
            )
            self._thread.start()

    def stop(self):
        """Stop emitting; the cursor position is kept."""
        was_active = self.is_active
        self.is_active = False
        self._stop_event.set()

        thread = self._thread
        self._thread = None
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=2.0)

        if was_active:
            logger.info(f"Position simulator stopped for leg {self.leg_id}")

    def tick(self) -> bool:
        """
        Advance the cursor once.

        Returns:
            True while the leg is still in progress
        """
        if not self.is_active or self.route is None:
            return False

        speed_kmh = max(0.0, float(self.speed_source()))
        step_m = speed_kmh / 3.6 * self.tick_interval * self.time_scale
        self.distance_m = min(self.route.path_length_m, self.distance_m + step_m)
        self.ticks += 1

        position = self.route.position_at(self.distance_m)
        self.emit(PositionTick(self.mission_id, self.leg_id, position, self.distance_m))

        if self.route.remaining_m(self.distance_m) < self.arrival_threshold_m:
            self.is_active = False
            logger.info(f"Leg {self.leg_id} reached final waypoint after {self.ticks} ticks")
            self.emit(Arrived(self.mission_id, self.leg_id, position))
            return False

        return True

    def _run_loop(self, stop_event: threading.Event):
        """Tick loop for threaded mode."""
        while not stop_event.wait(self.tick_interval):
            try:
                if not self.tick():
                    break
            except Exception as e:
                logger.error(f"Position tick error: {e}")
                break
