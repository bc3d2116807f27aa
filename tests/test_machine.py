"""Tests for the machine state machine and per-tick simulation."""

import dataclasses
import random

import pytest

from oee_fleet_sim.downtime import DEFAULT_REASON
from oee_fleet_sim.machine import (
    create_machine,
    next_status,
    simulate_readings,
    step_machine,
)
from oee_fleet_sim.models import LineFamily, MachineStatus

from conftest import NOW, ScriptedRandom


class TestNextStatus:
    """Tests for the autonomous transition rules."""

    @pytest.mark.parametrize(
        "status,r,expected",
        [
            (MachineStatus.RUNNING, 0.004, MachineStatus.DOWN),
            (MachineStatus.RUNNING, 0.005, MachineStatus.RUNNING),
            (MachineStatus.DOWN, 0.049, MachineStatus.IDLE),
            (MachineStatus.DOWN, 0.05, MachineStatus.DOWN),
            (MachineStatus.IDLE, 0.099, MachineStatus.RUNNING),
            (MachineStatus.IDLE, 0.10, MachineStatus.IDLE),
            (MachineStatus.MAINTENANCE, 0.0, MachineStatus.MAINTENANCE),
        ],
    )
    def test_thresholds(self, status, r, expected):
        assert next_status(status, r) == expected

    def test_running_never_goes_idle_directly(self):
        assert next_status(MachineStatus.RUNNING, 0.001) != MachineStatus.IDLE


class TestSimulateReadings:
    """Tests for status-dependent readings."""

    def test_running_cnc_lower_bounds(self):
        readings = simulate_readings(
            MachineStatus.RUNNING, LineFamily.CNC, 40.0, ScriptedRandom([0.0, 0.0, 0.9, 0.5])
        )

        assert readings.energy_kw == 25.0
        assert readings.vibration == 2.0
        assert readings.temperature == pytest.approx(40.1)
        assert readings.produced is True
        assert readings.defect is False

    def test_running_assembly_ranges(self):
        readings = simulate_readings(
            MachineStatus.RUNNING, LineFamily.ASSEMBLY, 40.0, ScriptedRandom([0.5, 0.5, 0.9, 0.5])
        )

        assert readings.energy_kw == pytest.approx(6.5)
        assert readings.vibration == pytest.approx(0.75)

    def test_running_no_part(self):
        readings = simulate_readings(
            MachineStatus.RUNNING, LineFamily.CNC, 40.0, ScriptedRandom([0.0, 0.0, 0.39])
        )

        assert readings.produced is False
        assert readings.defect is False

    def test_running_defect(self):
        readings = simulate_readings(
            MachineStatus.RUNNING, LineFamily.CNC, 40.0, ScriptedRandom([0.0, 0.0, 0.4, 0.005])
        )

        assert readings.produced is True
        assert readings.defect is True

    def test_running_temperature_capped(self):
        readings = simulate_readings(
            MachineStatus.RUNNING, LineFamily.CNC, 84.95, ScriptedRandom([0.0, 0.0, 0.1])
        )

        assert readings.temperature == 85.0

    def test_idle(self):
        readings = simulate_readings(
            MachineStatus.IDLE, LineFamily.CNC, 40.0, ScriptedRandom([0.5])
        )

        assert readings.energy_kw == pytest.approx(2.5)
        assert readings.temperature == pytest.approx(39.8)
        assert readings.vibration == 0.1
        assert readings.produced is False

    def test_idle_temperature_floor(self):
        readings = simulate_readings(
            MachineStatus.IDLE, LineFamily.CNC, 25.1, ScriptedRandom([0.5])
        )

        assert readings.temperature == 25.0

    @pytest.mark.parametrize("status", [MachineStatus.DOWN, MachineStatus.MAINTENANCE])
    def test_powered_down(self, status):
        readings = simulate_readings(status, LineFamily.CNC, 20.3, ScriptedRandom([]))

        assert readings.energy_kw == 0.5
        assert readings.vibration == 0.0
        assert readings.temperature == 20.0
        assert readings.produced is False


class TestStepMachine:
    """Tests for one full machine tick."""

    def test_produces_part(self, cnc_machine):
        rng = ScriptedRandom([0.5, 0.0, 0.0, 0.5, 0.5])

        updated = step_machine(cnc_machine, rng, NOW)

        assert updated.status == MachineStatus.RUNNING
        assert updated.total_parts == cnc_machine.total_parts + 1
        assert updated.defect_parts == cnc_machine.defect_parts
        assert updated.hourly_production[-1].value == cnc_machine.hourly_production[-1].value + 1
        assert updated.energy_history[-1].value == 25.0
        assert updated.energy_history[-1].time == NOW.isoformat()

    def test_counts_stay_consistent(self, cnc_machine):
        rng = ScriptedRandom([0.5, 0.0, 0.0, 0.5, 0.001])

        updated = step_machine(cnc_machine, rng, NOW)

        assert updated.defect_parts == cnc_machine.defect_parts + 1
        assert updated.good_parts + updated.defect_parts == updated.total_parts

    def test_oee_histories_use_fresh_oee(self, cnc_machine):
        updated = step_machine(cnc_machine, ScriptedRandom([0.5, 0.0, 0.0, 0.5, 0.5]), NOW)

        assert updated.oee_history[-1].value == updated.oee
        assert updated.hourly_oee[-1].value == updated.oee
        assert updated.hourly_oee[:-1] == cnc_machine.hourly_oee[:-1]
        assert updated.oee == pytest.approx(
            updated.availability * updated.performance * updated.quality / 10000
        )

    def test_history_lengths_fixed(self, cnc_machine):
        machine = cnc_machine
        rng = random.Random(11)
        for _ in range(30):
            machine = step_machine(machine, rng, NOW)

        assert len(machine.energy_history) == 20
        assert len(machine.oee_history) == 20
        assert len(machine.hourly_production) == 8
        assert len(machine.hourly_oee) == 8

    def test_input_machine_unchanged(self, cnc_machine):
        before = dataclasses.replace(cnc_machine)
        log_before = list(cnc_machine.downtime_log)

        step_machine(cnc_machine, ScriptedRandom([0.001]), NOW)

        assert cnc_machine == before
        assert cnc_machine.downtime_log == log_before

    def test_down_scenario(self, cnc_machine):
        """RUNNING with draw 0.003 goes DOWN, then a 0.5 draw keeps it DOWN."""
        previous_events = len(cnc_machine.downtime_log)

        first = step_machine(cnc_machine, ScriptedRandom(default=0.003), NOW)

        assert first.status == MachineStatus.DOWN
        assert len(first.downtime_log) == previous_events + 1
        assert first.downtime_log[0].duration_minutes == 0
        assert first.downtime_log[0].reason == DEFAULT_REASON
        assert first.energy_consumption_kw == 0.5
        assert first.vibration == 0.0

        second = step_machine(first, ScriptedRandom([0.5]), NOW)

        assert second.status == MachineStatus.DOWN
        assert second.downtime_log[0].duration_minutes == 1
        assert len(second.downtime_log) == previous_events + 1

    def test_downtime_accumulates_per_tick(self, cnc_machine):
        rng = ScriptedRandom([0.001], default=0.9)
        machine = step_machine(cnc_machine, rng, NOW)

        for _ in range(7):
            machine = step_machine(machine, rng, NOW)

        assert machine.status == MachineStatus.DOWN
        assert machine.downtime_log[0].duration_minutes == 7

    def test_recovery_stops_accumulation(self, cnc_machine):
        machine = step_machine(cnc_machine, ScriptedRandom([0.001]), NOW)
        machine = step_machine(machine, ScriptedRandom([0.9]), NOW)

        recovered = step_machine(machine, ScriptedRandom([0.01, 0.0]), NOW)

        assert recovered.status == MachineStatus.IDLE
        assert recovered.downtime_log[0].duration_minutes == 1
        assert recovered.energy_consumption_kw == 2.0

    def test_no_production_while_idle(self, cnc_machine):
        idle = dataclasses.replace(cnc_machine, status=MachineStatus.IDLE)

        updated = step_machine(idle, ScriptedRandom([0.5, 0.5]), NOW)

        assert updated.status == MachineStatus.IDLE
        assert updated.total_parts == idle.total_parts
        assert updated.hourly_production == idle.hourly_production

    def test_maintenance_is_sticky(self, cnc_machine):
        machine = dataclasses.replace(cnc_machine, status=MachineStatus.MAINTENANCE)

        for _ in range(10):
            machine = step_machine(machine, ScriptedRandom([0.0]), NOW)

        assert machine.status == MachineStatus.MAINTENANCE
        assert len(machine.downtime_log) == len(cnc_machine.downtime_log)


class TestCreateMachine:
    """Tests for initial machine generation."""

    @pytest.mark.parametrize("seed", range(10))
    def test_cnc_bounds(self, seed):
        m = create_machine("CNC-03", "CNC Mill 03", "Turbine Blade", random.Random(seed), NOW)

        assert m.family == LineFamily.CNC
        assert m.status in (MachineStatus.RUNNING, MachineStatus.IDLE)
        assert m.target_parts == 1000
        assert 100 <= m.total_parts < 600
        assert m.defect_parts == 0
        assert m.good_parts == m.total_parts
        assert m.quality == 100.0
        assert 2.0 <= m.parts_per_minute < 5.0
        assert 15.0 <= m.energy_consumption_kw < 25.0
        assert 30.0 <= m.temperature < 45.0
        assert 0.2 <= m.vibration < 1.0
        assert 72.0 <= m.availability < 100.0
        assert 68.0 <= m.performance < 100.0
        assert 2 <= len(m.downtime_log) <= 6
        assert len(m.hourly_production) == 8
        assert all(slot.value < 50 for slot in m.hourly_production)
        assert len(m.energy_history) == 20
        assert len(m.oee_history) == 20
        assert m.oee == pytest.approx(m.availability * m.performance * m.quality / 10000)

    def test_assembly_profile(self):
        m = create_machine("ASM-02", "OP20 - Chassis Weld", "Model X Chassis", random.Random(5), NOW)

        assert m.family == LineFamily.ASSEMBLY
        assert m.target_parts == 2000
        assert 5.0 <= m.parts_per_minute < 10.0
        assert 5.0 <= m.energy_consumption_kw < 10.0
        assert all(slot.value < 100 for slot in m.hourly_production)

    def test_default_shift_config(self):
        m = create_machine("CNC-01", "CNC Mill 01", "Piston Rod", random.Random(1), NOW, "Ann Lee")

        assert m.operator_name == "Ann Lee"
        assert m.shift_start_time == "08:00"
        assert m.shift_end_time == "16:00"
        assert m.break_start_time == "12:00"
        assert m.break_end_time == "12:30"
