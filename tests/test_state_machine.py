"""
Test StateMachine and MissionLog - Validates status bookkeeping

Tests:
1. Valid and invalid status transitions
2. Transition history and callbacks
3. Append-only, ordered narration log
"""

import sys
import pytest
from datetime import datetime
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from greenwave.utils.state_machine import StateMachine, MissionStatus
from greenwave.utils.mission_log import MissionLog, LogKind


@pytest.fixture
def machine():
    return StateMachine(MissionStatus.IDLE)


class TestTransitions:
    """Tests for the transition table."""

    def test_initial_state(self, machine):
        assert machine.get_state() == MissionStatus.IDLE
        assert machine.previous_state is None

    def test_full_dispatch_cycle(self, machine):
        cycle = [
            MissionStatus.CALCULATING,
            MissionStatus.ENROUTE_PATIENT,
            MissionStatus.AT_PATIENT,
            MissionStatus.ENROUTE_HOSPITAL,
            MissionStatus.COMPLETED,
            MissionStatus.IDLE,
        ]
        for status in cycle:
            assert machine.transition_to(status) is True
        assert machine.status_sequence() == cycle

    def test_invalid_transition_rejected(self, machine):
        assert machine.transition_to(MissionStatus.AT_PATIENT) is False
        assert machine.get_state() == MissionStatus.IDLE
        assert machine.get_history() == []

    def test_cannot_skip_patient_pickup(self, machine):
        machine.transition_to(MissionStatus.CALCULATING)
        machine.transition_to(MissionStatus.ENROUTE_PATIENT)
        assert machine.can_transition_to(MissionStatus.ENROUTE_HOSPITAL) is False
        assert machine.can_transition_to(MissionStatus.COMPLETED) is False

    @pytest.mark.parametrize("path", [
        [MissionStatus.CALCULATING],
        [MissionStatus.CALCULATING, MissionStatus.ENROUTE_PATIENT],
        [MissionStatus.CALCULATING, MissionStatus.ENROUTE_PATIENT, MissionStatus.AT_PATIENT],
        [MissionStatus.CALCULATING, MissionStatus.ENROUTE_PATIENT, MissionStatus.AT_PATIENT,
         MissionStatus.ENROUTE_HOSPITAL],
    ])
    def test_abort_allowed_from_active_states(self, machine, path):
        for status in path:
            machine.transition_to(status)
        assert machine.can_transition_to(MissionStatus.IDLE) is True

    def test_is_enroute(self, machine):
        assert machine.is_enroute() is False
        machine.transition_to(MissionStatus.CALCULATING)
        machine.transition_to(MissionStatus.ENROUTE_PATIENT)
        assert machine.is_enroute() is True
        machine.transition_to(MissionStatus.AT_PATIENT)
        assert machine.is_enroute() is False


class TestHistoryAndCallbacks:
    """Tests for history bookkeeping."""

    def test_callback_receives_transition(self, machine):
        seen = []
        machine.on_state_change = lambda old, new, reason: seen.append((old, new, reason))

        machine.transition_to(MissionStatus.CALCULATING, "start")

        assert seen == [(MissionStatus.IDLE, MissionStatus.CALCULATING, "start")]

    def test_callback_error_does_not_block_transition(self, machine):
        def broken(old, new, reason):
            raise RuntimeError("boom")
        machine.on_state_change = broken

        assert machine.transition_to(MissionStatus.CALCULATING) is True
        assert machine.get_state() == MissionStatus.CALCULATING

    def test_history_is_bounded(self):
        machine = StateMachine(max_history=3)
        for _ in range(3):
            machine.transition_to(MissionStatus.CALCULATING)
            machine.transition_to(MissionStatus.IDLE)
        assert len(machine.get_history()) == 3
        assert len(machine.get_history(last_n=2)) == 2


class TestMissionLog:
    """Tests for the narration log."""

    def test_append_order_and_kinds(self):
        log = MissionLog()
        log.info("first")
        log.warning("second")
        log.success("third")
        log.analysis("fourth")

        entries = log.entries()
        assert [e.message for e in entries] == ["first", "second", "third", "fourth"]
        assert [e.kind for e in entries] == [
            LogKind.INFO, LogKind.WARNING, LogKind.SUCCESS, LogKind.ANALYSIS
        ]
        assert len(log) == 4

    def test_ids_are_unique(self):
        log = MissionLog()
        for i in range(200):
            log.info(f"entry {i}")
        ids = [e.id for e in log.entries()]
        assert len(set(ids)) == len(ids)

    def test_entries_are_immutable_snapshot(self):
        log = MissionLog()
        log.info("one")
        entries = log.entries()
        log.info("two")

        assert len(entries) == 1
        with pytest.raises(AttributeError):
            entries[0].message = "changed"

    def test_filter_by_kind(self):
        log = MissionLog()
        log.info("a")
        log.warning("b")
        log.warning("c")
        assert [e.message for e in log.entries(LogKind.WARNING)] == ["b", "c"]

    def test_clock_and_serialization(self):
        log = MissionLog(clock=lambda: datetime(2024, 1, 1, 9, 5, 7))
        entry = log.success("done")
        data = entry.to_dict()
        assert data['timestamp'] == "09:05:07"
        assert data['type'] == "success"
        assert data['message'] == "done"

    def test_listener_called_and_errors_isolated(self):
        log = MissionLog()
        received = []

        def broken(entry):
            raise RuntimeError("bad listener")

        log.add_listener(broken)
        log.add_listener(received.append)

        entry = log.info("hello")

        assert received == [entry]
        assert len(log) == 1
