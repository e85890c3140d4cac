"""
MissionController - Dispatch Mission State Machine

Owns the Mission aggregate and applies operator intents and simulator /
provider events to it. Every mutation happens under one lock, and every
asynchronous result is posted back as an event tagged with the mission
and leg it was produced for, so late results from an aborted mission or
a finished leg are discarded instead of applied.
"""

import random
import logging
import threading
from queue import Queue, Empty
from typing import Optional, Callable, List, Tuple

from greenwave.errors import InputError, RouteProviderError
from greenwave.utils.config import build_config
from greenwave.utils.geo_math import Coordinate, distance_between, is_within_radius, random_point_within
from greenwave.utils.mission_log import MissionLog, LogEntry
from greenwave.utils.state_machine import StateMachine, MissionStatus
from greenwave.intelligence.route_provider import (
    Route,
    RouteProvider,
    DirectLineRouteProvider,
    create_route_provider
)
from greenwave.intelligence.analysis_provider import AnalysisProvider, create_analysis_provider
from greenwave.simulation.position_simulator import PositionSimulator
from greenwave.simulation.traffic_signals import TrafficSignalSimulator
from greenwave.mission.events import (
    MissionEvent,
    RouteComputed,
    AnalysisReady,
    AnalysisFailed,
    PositionTick,
    Arrived,
    SignalChanged,
    CompletionAcknowledged
)
from greenwave.mission.models import (
    Mission,
    MissionSnapshot,
    Emergency,
    Severity,
    TrafficState,
    BASE_LOCATION,
    HOSPITAL_LOCATION,
    DISTANCE_PLACEHOLDER,
    ETA_PLACEHOLDER,
    format_distance,
    format_eta
)

logger = logging.getLogger(__name__)


class MissionController:
    """
    Emergency dispatch state machine.

    Drives one mission through IDLE -> CALCULATING -> ENROUTE_PATIENT ->
    AT_PATIENT -> ENROUTE_HOSPITAL -> COMPLETED -> IDLE, with operator
    abort back to IDLE from any status.
    """

    def __init__(self, config: dict = None,
                 route_provider: RouteProvider = None,
                 analysis_provider: AnalysisProvider = None,
                 rng: Optional[random.Random] = None,
                 mission_log: MissionLog = None):
        """
        Initialize MissionController.

        Args:
            config: Full configuration dictionary (see config/mission_params.yaml)
            route_provider: Route computation collaborator
            analysis_provider: Emergency analysis collaborator
            rng: Random source for target placement, speed jitter and signals
            mission_log: Narration log (a new one if omitted)
        """
        self.config = config if config is not None else build_config()
        mission_config = self.config.get('mission', {})
        speed_config = self.config.get('speed', {})
        routing_config = self.config.get('routing', {})

        self.rng = rng or random.Random()
        self.threaded = mission_config.get('threaded', True)

        # Mission parameters
        self.patient_radius_m = mission_config.get('patient_radius_m', 1500.0)
        self.arrival_threshold_m = mission_config.get('arrival_threshold_m', 25.0)
        self.completion_delay = mission_config.get('completion_delay', 1.0)
        self.context_hint = mission_config.get('context_hint', 'Heavy Congestion')
        self.hospital_location = Coordinate(
            mission_config.get('hospital_lat', HOSPITAL_LOCATION.lat),
            mission_config.get('hospital_lng', HOSPITAL_LOCATION.lng)
        )
        base_location = Coordinate(
            mission_config.get('base_lat', BASE_LOCATION.lat),
            mission_config.get('base_lng', BASE_LOCATION.lng)
        )

        # Speed rule
        self.patient_base_kmh = speed_config.get('patient_base_kmh', 50)
        self.hospital_base_kmh = speed_config.get('hospital_base_kmh', 80)
        self.jitter_kmh = max(1, int(speed_config.get('jitter_kmh', 20)))

        # Collaborators
        self.route_retries = max(0, int(routing_config.get('retries', 1)))
        self.route_provider = route_provider or create_route_provider(routing_config)
        self.fallback_provider = DirectLineRouteProvider(routing_config)
        self.analysis_provider = analysis_provider or create_analysis_provider(
            self.config.get('analysis', {}), self.rng
        )

        # State
        self.log = mission_log or MissionLog()
        self.state_machine = StateMachine(MissionStatus.IDLE)
        self.mission = Mission(ambulance_position=base_location)
        self.mission_id = 0
        self.leg_id = 0

        # Simulators
        simulation_config = dict(self.config.get('simulation', {}))
        simulation_config.setdefault('arrival_threshold_m', self.arrival_threshold_m)
        self.position_simulator = PositionSimulator(self.post, simulation_config,
                                                    threaded=self.threaded)
        self.signal_simulator = TrafficSignalSimulator(self.post, self.config.get('signals', {}),
                                                       rng=self.rng, threaded=self.threaded)

        # Event handling
        self._lock = threading.RLock()
        self._events: Queue = Queue()
        self._listeners: List[Callable[[MissionSnapshot], None]] = []
        self._completion_timer: Optional[threading.Timer] = None
        self._loop_thread: Optional[threading.Thread] = None
        self.is_running = False
        self.events_discarded = 0
        self.sequence = 0

    # ------------------------------------------------------------------
    # Event loop
    # ------------------------------------------------------------------

    def start(self):
        """Start the background event loop (threaded mode)."""
        if self.is_running:
            return
        self.is_running = True
        self._loop_thread = threading.Thread(
            target=self._run_loop,
            daemon=True,
            name="MissionController-Events"
        )
        self._loop_thread.start()
        logger.info("Mission controller event loop started")

    def shutdown(self):
        """Stop simulators, timers and the event loop."""
        logger.info("Shutting down mission controller...")
        self.is_running = False
        with self._lock:
            self._stop_leg()
            self._cancel_completion_timer()
        if self._loop_thread and self._loop_thread.is_alive():
            self._loop_thread.join(timeout=2.0)
        self._loop_thread = None
        logger.info("Mission controller stopped")

    def post(self, event: MissionEvent):
        """Queue an event for processing. Safe to call from any thread."""
        self._events.put(event)

    def process_pending(self, max_events: int = None) -> int:
        """
        Handle queued events on the calling thread.

        Events posted while handling are processed too.

        Args:
            max_events: Optional cap on events handled

        Returns:
            Number of events handled (including discarded ones)
        """
        handled = 0
        while max_events is None or handled < max_events:
            try:
                event = self._events.get_nowait()
            except Empty:
                break
            self.handle_event(event)
            handled += 1
        return handled

    def _run_loop(self):
        while self.is_running:
            try:
                event = self._events.get(timeout=0.1)
            except Empty:
                continue
            try:
                self.handle_event(event)
            except Exception as e:
                logger.error(f"Event handling error for {type(event).__name__}: {e}")

    def handle_event(self, event: MissionEvent) -> bool:
        """
        Apply a single event atomically.

        Returns:
            True if applied, False if discarded as stale
        """
        with self._lock:
            if not self._is_current(event):
                self.events_discarded += 1
                logger.debug(f"Discarding stale {type(event).__name__} "
                             f"(mission {event.mission_id}, leg {event.leg_id})")
                return False

            if isinstance(event, PositionTick):
                self._on_position_tick(event)
            elif isinstance(event, SignalChanged):
                self._apply_signal(event.state)
            elif isinstance(event, Arrived):
                self._arrive()
            elif isinstance(event, RouteComputed):
                self._on_route_computed(event)
            elif isinstance(event, AnalysisReady):
                self.log.analysis(event.text)
            elif isinstance(event, AnalysisFailed):
                self.log.warning(f"AI analysis unavailable: {event.reason}")
            elif isinstance(event, CompletionAcknowledged):
                self._on_completion_acknowledged()
            else:
                logger.warning(f"Unknown event type: {type(event).__name__}")
                return False

            self._publish_change()

        return True

    def _is_current(self, event: MissionEvent) -> bool:
        """Check the event still refers to the active mission and leg."""
        if event.mission_id != self.mission_id:
            return False

        status = self.state_machine.get_state()
        if isinstance(event, (AnalysisReady, AnalysisFailed)):
            return status != MissionStatus.IDLE
        if isinstance(event, CompletionAcknowledged):
            return status == MissionStatus.COMPLETED
        return event.leg_id == self.leg_id and self.state_machine.is_enroute()

    # ------------------------------------------------------------------
    # Operator intents
    # ------------------------------------------------------------------

    def authenticate(self, officer_id: str = None) -> bool:
        """Record operator sign-in."""
        logger.info(f"Operator signed in: {officer_id or 'anonymous'}")
        self.log.success("System initialized. User authenticated.")
        return True

    def configure_emergency(self, emergency_type: str, severity, description: str,
                            patient_name: str = None) -> bool:
        """
        Set the emergency for the next mission.

        Only accepted while IDLE; the emergency is fixed during a run.

        Returns:
            True if the emergency was updated
        """
        with self._lock:
            if self.state_machine.get_state() != MissionStatus.IDLE:
                logger.warning("Emergency cannot be changed during an active mission")
                return False

            try:
                if not emergency_type or not str(emergency_type).strip():
                    raise InputError("Emergency type is required")
                parsed_severity = Severity.parse(severity)
            except InputError as e:
                self.log.warning(f"Invalid emergency configuration: {e}")
                return False

            self.mission.emergency = Emergency(
                type=str(emergency_type).strip(),
                severity=parsed_severity,
                patient_name=patient_name or self.mission.emergency.patient_name,
                description=description or ""
            )
            self.log.info(f"Emergency configured: {self.mission.emergency.type} "
                          f"({parsed_severity.value})")
            self._publish_change()

        return True

    def set_location(self, lat, lng, source: str = "manual") -> bool:
        """
        Set the ambulance start position.

        Args:
            lat: Latitude (number or numeric string)
            lng: Longitude (number or numeric string)
            source: 'manual' for operator entry, 'device' for geolocation

        Returns:
            True if the position was updated
        """
        with self._lock:
            if self.state_machine.get_state() != MissionStatus.IDLE:
                logger.warning("Location can only be set while IDLE")
                return False

            try:
                position = Coordinate(lat, lng)
            except InputError as e:
                logger.warning(f"Rejected coordinates: {e}")
                self.log.warning("Invalid coordinates entered.")
                return False

            self.mission.ambulance_position = position
            if source == "device":
                self.log.success(f"Location locked: {position}")
            else:
                self.log.warning(f"Manual coordinates set: {position}")
            self._publish_change()

        return True

    def report_location_failure(self) -> bool:
        """Device geolocation failed; the current position is kept."""
        self.log.warning("GPS Signal weak. Defaulting to Base Station.")
        return True

    def start_mission(self) -> bool:
        """
        Initiate the emergency protocol.

        Picks a patient location near the ambulance, requests the
        emergency analysis and starts the patient leg under green
        corridor preemption.

        Returns:
            True if the mission started
        """
        with self._lock:
            if self.state_machine.get_state() != MissionStatus.IDLE:
                logger.warning("Mission already in progress")
                return False

            self.mission_id += 1
            # Target is set before CALCULATING is entered so it is never observed empty
            origin = self.mission.ambulance_position
            self.mission.target_position = random_point_within(origin, self.patient_radius_m, self.rng)

            self._set_status(MissionStatus.CALCULATING, "Emergency protocol initiated")
            self.log.info("Mission parameters uploaded. Analyzing route...")
            logger.info(f"Patient located at {self.mission.target_position} "
                        f"({distance_between(origin, self.mission.target_position):.0f} m)")

            self._request_analysis()

            self._begin_leg(MissionStatus.ENROUTE_PATIENT, corridor=True)
            self.log.success("GREEN CORRIDOR PROTOCOL: ACTIVE. All signals preempted.")
            self._publish_change()

        return True

    def begin_transport(self) -> bool:
        """
        Operator confirms the patient is secured.

        The pickup point becomes the new route origin and the hospital the
        new target.

        Returns:
            True if the hospital leg started
        """
        with self._lock:
            if self.state_machine.get_state() != MissionStatus.AT_PATIENT:
                logger.warning("Transport can only begin at the patient location")
                return False

            pickup = self.mission.target_position
            self.mission.awaiting_transport_confirmation = False
            self.mission.ambulance_position = pickup
            self.mission.target_position = self.hospital_location

            self._begin_leg(MissionStatus.ENROUTE_HOSPITAL, corridor=False)
            self.log.warning("Patient secured. Rerouting to Trauma Center.")
            self.log.success("High Speed Protocol Engaged. Signals Syncing...")
            self._publish_change()

        return True

    def abort_mission(self) -> bool:
        """
        Abort back to IDLE from any status.

        Emergency configuration and the log are kept; the ambulance stays
        at its last known position.

        Returns:
            True if a mission was aborted
        """
        with self._lock:
            if self.state_machine.get_state() == MissionStatus.IDLE:
                logger.info("Abort requested while IDLE - nothing to do")
                return False

            self._stop_leg()
            self._cancel_completion_timer()
            # Invalidate every in-flight result of the aborted mission
            self.mission_id += 1
            self.leg_id += 1

            self._set_status(MissionStatus.IDLE, "Operator abort")
            self._reset_transient()
            self.log.warning("Mission aborted by operator.")
            self._publish_change()

        return True

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _set_status(self, status: MissionStatus, reason: str = ""):
        if not self.state_machine.transition_to(status, reason):
            raise RuntimeError(f"Illegal status change "
                               f"{self.state_machine.get_state().value} -> {status.value}")
        self.mission.status = status

    def _begin_leg(self, status: MissionStatus, corridor: bool):
        """Enter a driving leg and start its simulators and route request."""
        self._stop_leg()
        self.leg_id += 1
        self._set_status(status, f"Leg {self.leg_id}")

        self.mission.route = None
        self.mission.eta_seconds = None
        self.mission.distance_traveled_m = 0.0
        self.mission.corridor_engaged = corridor
        self.mission.traffic_state = (TrafficState.GREEN_CORRIDOR_ACTIVE if corridor
                                      else TrafficState.GREEN)
        self.mission.speed_kmh = self._compute_speed()

        initial_signal = None if corridor else TrafficState.GREEN
        self.signal_simulator.start(self.mission_id, self.leg_id, initial_signal)
        self._request_route(self.mission.ambulance_position, self.mission.target_position)

    def _stop_leg(self):
        self.position_simulator.stop()
        self.signal_simulator.stop()

    def _arrive(self) -> bool:
        """
        Handle arrival at the current target.

        Arrival is only honoured while the status is still the enroute
        value; the leg id is bumped so any other arrival for the same leg
        is stale.
        """
        if not self.state_machine.is_enroute():
            return False

        status = self.state_machine.get_state()

        self._stop_leg()
        self.leg_id += 1
        self.mission.speed_kmh = 0
        self.mission.corridor_engaged = False
        self.mission.eta_seconds = 0.0

        if status == MissionStatus.ENROUTE_PATIENT:
            self._set_status(MissionStatus.AT_PATIENT, "Arrived at patient")
            self.mission.traffic_state = TrafficState.YELLOW
            self.mission.awaiting_transport_confirmation = True
            self.log.info("Arrived at patient location. Medical team deploying.")
        else:
            self._set_status(MissionStatus.COMPLETED, "Arrived at hospital")
            self.mission.traffic_state = TrafficState.GREEN
            self.log.success("Arrived at Hospital. Patient transfer initiated.")
            self._schedule_completion()

        return True

    def _schedule_completion(self):
        event = CompletionAcknowledged(self.mission_id, self.leg_id)
        self._cancel_completion_timer()

        if self.threaded and self.completion_delay > 0:
            self._completion_timer = threading.Timer(self.completion_delay, self.post, args=(event,))
            self._completion_timer.daemon = True
            self._completion_timer.start()
        else:
            self.post(event)

    def _cancel_completion_timer(self):
        if self._completion_timer:
            self._completion_timer.cancel()
            self._completion_timer = None

    def _on_completion_acknowledged(self):
        self._completion_timer = None
        # Next run starts where this one ended
        final_target = self.mission.target_position
        self._set_status(MissionStatus.IDLE, "Mission complete")
        if final_target is not None:
            self.mission.ambulance_position = final_target
        self._reset_transient()
        self.log.success("Mission Successfully Completed.")

    def _reset_transient(self):
        """Clear per-mission fields; emergency configuration is kept."""
        self.mission.target_position = None
        self.mission.route = None
        self.mission.eta_seconds = None
        self.mission.distance_traveled_m = 0.0
        self.mission.speed_kmh = 0
        self.mission.corridor_engaged = False
        self.mission.awaiting_transport_confirmation = False
        self.mission.distance_display = DISTANCE_PLACEHOLDER
        self.mission.eta_display = ETA_PLACEHOLDER

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_route_computed(self, event: RouteComputed):
        route: Route = event.route
        if event.fallback:
            self.log.warning(f"Route provider failure ({event.failure}). "
                             f"Falling back to direct-line route.")

        self.mission.route = route
        self.mission.eta_seconds = route.total_time_s

        dist_km = f"{route.total_distance_m / 1000:.1f}"
        time_min = round(route.total_time_s / 60)
        self.mission.distance_display = f"{dist_km} km"
        self.mission.eta_display = f"{time_min} min"
        self.log.info(f"Route Calculated. Dist: {dist_km}km, ETA: {time_min}min")

        self.position_simulator.start(route, self.mission_id, self.leg_id, self.current_speed)

    def _on_position_tick(self, event: PositionTick):
        self.mission.ambulance_position = event.position
        self.mission.distance_traveled_m = event.distance_traveled_m
        self.mission.distance_display = format_distance(event.distance_traveled_m, precision=2)

        route = self.mission.route
        if route is not None and route.path_length_m > 0:
            remaining_fraction = route.remaining_m(event.distance_traveled_m) / route.path_length_m
            self.mission.eta_seconds = route.total_time_s * remaining_fraction
            self.mission.eta_display = format_eta(self.mission.eta_seconds)

        self.mission.speed_kmh = self._compute_speed()

        target = self.mission.target_position
        if target is not None and is_within_radius(target, event.position, self.arrival_threshold_m):
            self._arrive()

    def _apply_signal(self, new_state: TrafficState):
        """
        Traffic signal reaction.

        On a corridor leg every non-RED signal resolves to the green
        corridor; a RED always breaks it.
        """
        previous = self.mission.traffic_state
        if self.mission.corridor_engaged and new_state in (TrafficState.GREEN, TrafficState.YELLOW):
            new_state = TrafficState.GREEN_CORRIDOR_ACTIVE

        self.mission.traffic_state = new_state

        if new_state == TrafficState.RED:
            self.mission.speed_kmh = 0
            self.log.warning("Intersection Alert: RED Signal Detected. Braking...")
        elif (new_state == TrafficState.GREEN_CORRIDOR_ACTIVE
              and previous in (TrafficState.RED, TrafficState.YELLOW)):
            self.log.success("Override Engaged: Green Wave Active. Accelerating.")

    def _compute_speed(self) -> int:
        """Speed for the active leg: 0 at RED, otherwise leg base plus jitter."""
        if self.mission.traffic_state == TrafficState.RED:
            return 0
        if self.state_machine.get_state() == MissionStatus.ENROUTE_HOSPITAL:
            base = self.hospital_base_kmh
        else:
            base = self.patient_base_kmh
        return int(base + self.rng.randrange(self.jitter_kmh))

    def current_speed(self) -> float:
        """Current speed in km/h; lock-free read used by the position simulator."""
        return self.mission.speed_kmh

    # ------------------------------------------------------------------
    # Provider requests
    # ------------------------------------------------------------------

    def _request_route(self, origin: Coordinate, destination: Coordinate):
        args = (origin, destination, self.mission_id, self.leg_id)
        if self.threaded:
            threading.Thread(target=self._compute_route, args=args, daemon=True,
                             name=f"RouteRequest-{self.leg_id}").start()
        else:
            self._compute_route(*args)

    def _compute_route(self, origin: Coordinate, destination: Coordinate,
                       mission_id: int, leg_id: int):
        """Query the route provider with retries, falling back to a direct line."""
        attempts = self.route_retries + 1
        failure = None

        for attempt in range(1, attempts + 1):
            try:
                route = self.route_provider.compute_route(origin, destination)
                self.post(RouteComputed(mission_id, leg_id, route))
                return
            except RouteProviderError as e:
                failure = str(e)
            except Exception as e:
                failure = f"unexpected error: {e}"
            logger.warning(f"Route attempt {attempt}/{attempts} failed: {failure}")

        route = self.fallback_provider.compute_route(origin, destination)
        self.post(RouteComputed(mission_id, leg_id, route, fallback=True, failure=failure))

    def _request_analysis(self):
        emergency = self.mission.emergency
        args = (emergency.type, emergency.severity.value, self.mission_id, self.leg_id)
        if self.threaded:
            threading.Thread(target=self._run_analysis, args=args, daemon=True,
                             name=f"Analysis-{self.mission_id}").start()
        else:
            self._run_analysis(*args)

    def _run_analysis(self, emergency_type: str, severity: str, mission_id: int, leg_id: int):
        try:
            text = self.analysis_provider.analyze(emergency_type, severity, self.context_hint)
            self.post(AnalysisReady(mission_id, leg_id, text))
        except Exception as e:
            logger.warning(f"Analysis request failed: {e}")
            self.post(AnalysisFailed(mission_id, leg_id, str(e)))

    # ------------------------------------------------------------------
    # Observations
    # ------------------------------------------------------------------

    def _snapshot(self) -> MissionSnapshot:
        m = self.mission
        return MissionSnapshot(
            sequence=self.sequence,
            mission_id=self.mission_id,
            status=m.status,
            ambulance_position=m.ambulance_position,
            target_position=m.target_position,
            speed=m.speed_kmh,
            distance=m.distance_display,
            eta=m.eta_display,
            traffic_state=m.traffic_state,
            emergency=m.emergency,
            awaiting_transport_confirmation=m.awaiting_transport_confirmation
        )

    def snapshot(self) -> MissionSnapshot:
        """Read-only view of the current mission."""
        with self._lock:
            return self._snapshot()

    def logs(self) -> Tuple[LogEntry, ...]:
        """Mission log, oldest first."""
        return self.log.entries()

    @property
    def status(self) -> MissionStatus:
        return self.state_machine.get_state()

    def current_leg(self) -> Tuple[int, int]:
        """(mission_id, leg_id) that events must carry to be applied."""
        with self._lock:
            return self.mission_id, self.leg_id

    def add_listener(self, listener: Callable[[MissionSnapshot], None]):
        """
        Register a callback receiving a snapshot after each applied change.

        Listeners run with the mission lock held, so they observe changes
        in the order they were applied and must not block.
        """
        self._listeners.append(listener)

    def _publish_change(self):
        """Number the applied change and deliver it; caller holds the lock."""
        self.sequence += 1
        self._notify(self._snapshot())

    def _notify(self, snapshot: MissionSnapshot):
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Snapshot listener error: {e}")
