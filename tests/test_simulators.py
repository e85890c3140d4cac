"""
Test Simulators - Validates PositionSimulator and TrafficSignalSimulator

Tests:
1. Cursor advance, arrival and restart
2. Stopped simulators emit nothing
3. Signal changes only, weighting and validation
"""

import sys
import time
import random
import pytest
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from greenwave.utils.geo_math import Coordinate
from greenwave.intelligence.route_provider import DirectLineRouteProvider
from greenwave.mission.events import PositionTick, Arrived, SignalChanged
from greenwave.mission.models import TrafficState
from greenwave.simulation.position_simulator import PositionSimulator
from greenwave.simulation.traffic_signals import TrafficSignalSimulator

ORIGIN = Coordinate(40.785091, -73.968285)
HOSPITAL = Coordinate(40.789125, -73.954605)


@pytest.fixture
def route():
    return DirectLineRouteProvider({'fallback_points': 8}).compute_route(ORIGIN, HOSPITAL)


@pytest.fixture
def events():
    return []


@pytest.fixture
def position_sim(events):
    # 72 km/h -> 20 m/s; 1 s ticks at 10x -> 200 m per tick
    config = {'tick_interval': 1.0, 'time_scale': 10.0, 'arrival_threshold_m': 25.0}
    return PositionSimulator(events.append, config, threaded=False)


class TestPositionSimulator:
    """Tests for the position simulator."""

    def test_inactive_until_started(self, position_sim, events):
        assert position_sim.tick() is False
        assert events == []

    def test_tick_advances_by_speed(self, position_sim, route, events):
        position_sim.start(route, mission_id=1, leg_id=4, speed_source=lambda: 72.0)

        assert position_sim.tick() is True

        tick = events[0]
        assert isinstance(tick, PositionTick)
        assert (tick.mission_id, tick.leg_id) == (1, 4)
        assert tick.distance_traveled_m == pytest.approx(200.0)
        assert tick.position == route.position_at(200.0)

    def test_zero_speed_holds_position(self, position_sim, route, events):
        position_sim.start(route, 1, 1, speed_source=lambda: 0.0)
        position_sim.tick()
        position_sim.tick()
        assert [e.distance_traveled_m for e in events] == [0.0, 0.0]
        assert all(e.position == ORIGIN for e in events)

    def test_arrival_emitted_once(self, position_sim, route, events):
        position_sim.start(route, 1, 1, speed_source=lambda: 72.0)

        for _ in range(100):
            if not position_sim.tick():
                break

        arrivals = [e for e in events if isinstance(e, Arrived)]
        assert len(arrivals) == 1
        assert events[-1] is arrivals[0]
        assert position_sim.is_active is False

        # Lingering at the target does not re-trigger arrival
        assert position_sim.tick() is False
        assert len([e for e in events if isinstance(e, Arrived)]) == 1

    def test_distance_is_monotonic_and_bounded(self, position_sim, route, events):
        position_sim.start(route, 1, 1, speed_source=lambda: 72.0)
        while position_sim.tick():
            pass

        distances = [e.distance_traveled_m for e in events if isinstance(e, PositionTick)]
        assert distances == sorted(distances)
        assert distances[-1] <= route.path_length_m

    def test_stop_prevents_emission(self, position_sim, route, events):
        position_sim.start(route, 1, 1, speed_source=lambda: 72.0)
        position_sim.tick()
        position_sim.stop()

        assert position_sim.tick() is False
        assert len(events) == 1

    def test_restart_resets_cursor(self, position_sim, route, events):
        position_sim.start(route, 1, 1, speed_source=lambda: 72.0)
        position_sim.tick()
        position_sim.tick()

        position_sim.start(route, 1, 2, speed_source=lambda: 72.0)
        position_sim.tick()

        assert events[-1].leg_id == 2
        assert events[-1].distance_traveled_m == pytest.approx(200.0)

    def test_threaded_loop_stops(self, route, events):
        sim = PositionSimulator(events.append, {'tick_interval': 0.02, 'time_scale': 1.0},
                                threaded=True)
        sim.start(route, 1, 1, speed_source=lambda: 36.0)
        time.sleep(0.2)
        sim.stop()

        count = len(events)
        assert count > 0
        time.sleep(0.1)
        assert len(events) == count


class TestTrafficSignalSimulator:
    """Tests for the traffic signal simulator."""

    def test_inactive_emits_nothing(self, events):
        sim = TrafficSignalSimulator(events.append, rng=random.Random(1), threaded=False)
        assert sim.tick() is None
        assert events == []

    def test_only_changes_are_emitted(self, events):
        sim = TrafficSignalSimulator(events.append, rng=random.Random(11), threaded=False)
        sim.start(mission_id=2, leg_id=3)

        for _ in range(200):
            sim.tick()

        assert len(events) > 0
        assert all(isinstance(e, SignalChanged) for e in events)
        assert all((e.mission_id, e.leg_id) == (2, 3) for e in events)
        states = [e.state for e in events]
        for previous, current in zip(states, states[1:]):
            assert previous != current
        assert set(states) <= {TrafficState.RED, TrafficState.YELLOW, TrafficState.GREEN}

    def test_initial_state_not_reemitted(self, events):
        sim = TrafficSignalSimulator(events.append, {'weights': {'GREEN': 1.0}},
                                     rng=random.Random(1), threaded=False)
        sim.start(1, 1, initial_state=TrafficState.GREEN)

        for _ in range(10):
            assert sim.tick() is None
        assert events == []

    def test_single_weight_emits_once(self, events):
        sim = TrafficSignalSimulator(events.append, {'weights': {'RED': 1.0}},
                                     rng=random.Random(1), threaded=False)
        sim.start(1, 1)
        sim.tick()
        sim.tick()
        assert [e.state for e in events] == [TrafficState.RED]

    def test_seeded_sequence_is_deterministic(self):
        first, second = [], []
        for sink in (first, second):
            sim = TrafficSignalSimulator(sink.append, rng=random.Random(99), threaded=False)
            sim.start(1, 1)
            for _ in range(50):
                sim.tick()
        assert [e.state for e in first] == [e.state for e in second]

    def test_stop_prevents_emission(self, events):
        sim = TrafficSignalSimulator(events.append, {'weights': {'RED': 1.0}},
                                     rng=random.Random(1), threaded=False)
        sim.start(1, 1)
        sim.stop()
        assert sim.tick() is None
        assert events == []

    def test_corridor_weight_rejected(self, events):
        with pytest.raises(ValueError):
            TrafficSignalSimulator(events.append, {'weights': {'GREEN_CORRIDOR_ACTIVE': 1.0}})

    def test_zero_weights_rejected(self, events):
        with pytest.raises(ValueError):
            TrafficSignalSimulator(events.append, {'weights': {'RED': 0.0, 'GREEN': 0.0}})
