"""Tests for the downtime ledger."""

import random

import pytest

from oee_fleet_sim import downtime
from oee_fleet_sim.downtime import (
    DEFAULT_REASON,
    TPM_LOSSES,
    InvalidReasonError,
    accumulate,
    apply_transition,
    generate_past_downtime,
    open_event,
    reassign_reason,
)
from oee_fleet_sim.models import DowntimeEvent, MachineStatus


def _event(event_id="e1", reason="Energy Loss", duration=5):
    return DowntimeEvent(id=event_id, timestamp=1_000, reason=reason, duration_minutes=duration)


class TestTPMLosses:
    """Tests for the loss taxonomy."""

    def test_sixteen_categories(self):
        assert len(TPM_LOSSES) == 16
        assert len(set(TPM_LOSSES)) == 16

    def test_default_reason_is_first(self):
        assert DEFAULT_REASON == "Equipment Failure"


class TestOpenEvent:
    """Tests for open_event."""

    def test_prepends_zero_duration_event(self, now):
        log = [_event()]

        updated = open_event(log, now)

        assert len(updated) == 2
        assert updated[0].duration_minutes == 0
        assert updated[0].reason == DEFAULT_REASON
        assert updated[0].timestamp == int(now.timestamp() * 1000)
        assert updated[1] == log[0]

    def test_fresh_ids(self, now):
        first = open_event([], now)[0]
        second = open_event([], now)[0]

        assert first.id != second.id


class TestAccumulate:
    """Tests for accumulate."""

    def test_increments_head_only(self):
        log = [_event("head", duration=3), _event("old", duration=7)]

        updated = accumulate(log)

        assert updated[0].duration_minutes == 4
        assert updated[1].duration_minutes == 7
        assert log[0].duration_minutes == 3

    def test_empty_log(self):
        assert accumulate([]) == []


class TestApplyTransition:
    """Tests for apply_transition."""

    @pytest.mark.parametrize(
        "previous", [MachineStatus.RUNNING, MachineStatus.IDLE, MachineStatus.MAINTENANCE]
    )
    def test_entering_down_opens_event(self, previous, now):
        updated = apply_transition([_event()], previous, MachineStatus.DOWN, now)

        assert len(updated) == 2
        assert updated[0].duration_minutes == 0

    def test_staying_down_accumulates(self, now):
        updated = apply_transition(
            [_event(duration=2)], MachineStatus.DOWN, MachineStatus.DOWN, now
        )

        assert len(updated) == 1
        assert updated[0].duration_minutes == 3

    def test_leaving_down_stops_accumulation(self, now):
        updated = apply_transition(
            [_event(duration=2)], MachineStatus.DOWN, MachineStatus.IDLE, now
        )

        assert updated[0].duration_minutes == 2

    def test_running_leaves_log_alone(self, now):
        log = [_event()]

        updated = apply_transition(log, MachineStatus.RUNNING, MachineStatus.RUNNING, now)

        assert updated == log


class TestReassignReason:
    """Tests for reassign_reason."""

    def test_replaces_head_reason_only(self):
        log = [_event("head", reason="Energy Loss"), _event("old", reason="Yield Loss")]

        updated = reassign_reason(log, "Speed Reduction")

        assert updated[0].reason == "Speed Reduction"
        assert updated[0].duration_minutes == log[0].duration_minutes
        assert updated[1].reason == "Yield Loss"
        assert log[0].reason == "Energy Loss"

    def test_empty_log_is_noop(self):
        assert reassign_reason([], "Speed Reduction") == []

    def test_unknown_reason_rejected(self):
        with pytest.raises(InvalidReasonError):
            reassign_reason([_event()], "Coffee Break")

    def test_invalid_reason_is_value_error(self):
        assert issubclass(InvalidReasonError, ValueError)


class TestGeneratePastDowntime:
    """Tests for seeded downtime history."""

    def test_count_and_bounds(self, now):
        events = generate_past_downtime(6, random.Random(1), now)
        now_ms = int(now.timestamp() * 1000)
        week_ms = 7 * 24 * 60 * 60 * 1000

        assert len(events) == 6
        for event in events:
            assert event.reason in TPM_LOSSES
            assert 10 <= event.duration_minutes < 130
            assert now_ms - week_ms <= event.timestamp <= now_ms

    def test_sorted_newest_first(self, now):
        events = generate_past_downtime(5, random.Random(2), now)

        timestamps = [e.timestamp for e in events]
        assert timestamps == sorted(timestamps, reverse=True)

    def test_module_exposes_window(self):
        assert downtime.PAST_EVENT_WINDOW.days == 7
