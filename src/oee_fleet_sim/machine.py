"""Per-machine state machine and status-dependent simulation.

Autonomous transitions only cycle RUNNING -> DOWN -> IDLE -> RUNNING, each as
an independent Bernoulli trial per tick on a single uniform draw:

    RUNNING -> DOWN     r < 0.005
    DOWN    -> IDLE     r < 0.05
    IDLE    -> RUNNING  r < 0.10

MAINTENANCE is only entered and left through external commands.

Random draws per machine and tick happen in a fixed order (transition,
energy, vibration, production, defect) so a scripted random source
reproduces a run exactly.
"""

import dataclasses
import logging
import random
from dataclasses import dataclass
from datetime import datetime

from . import downtime, history
from .metrics import apply_metrics
from .models import LineFamily, Machine, MachineStatus

logger = logging.getLogger(__name__)

# Transition thresholds
RUNNING_TO_DOWN = 0.005
DOWN_TO_IDLE = 0.05
IDLE_TO_RUNNING = 0.10

# Production
NO_PART_PROBABILITY = 0.4
DEFECT_PROBABILITY = 0.01

# Temperature limits and per-tick drift (Celsius)
MAX_TEMPERATURE = 85.0
IDLE_MIN_TEMPERATURE = 25.0
DOWN_MIN_TEMPERATURE = 20.0
RUNNING_HEAT_STEP = 0.1
IDLE_COOL_STEP = 0.2
DOWN_COOL_STEP = 0.5

# Readings when not running
IDLE_ENERGY_BASE_KW = 2.0
IDLE_ENERGY_SPREAD_KW = 1.0
IDLE_VIBRATION = 0.1
DOWN_ENERGY_KW = 0.5
DOWN_VIBRATION = 0.0


@dataclass(frozen=True)
class FamilyProfile:
    """Reading ranges and volumes for one asset family."""

    running_energy_base_kw: float
    running_energy_spread_kw: float
    running_vibration_base: float
    running_vibration_spread: float
    target_parts: int
    parts_per_minute_base: float
    parts_per_minute_spread: float
    initial_energy_base_kw: float
    initial_energy_spread_kw: float
    hourly_production_max: int


FAMILY_PROFILES = {
    LineFamily.CNC: FamilyProfile(
        running_energy_base_kw=25.0,
        running_energy_spread_kw=15.0,
        running_vibration_base=2.0,
        running_vibration_spread=1.0,
        target_parts=1000,
        parts_per_minute_base=2.0,
        parts_per_minute_spread=3.0,
        initial_energy_base_kw=15.0,
        initial_energy_spread_kw=10.0,
        hourly_production_max=50,
    ),
    # Assembly robots draw less power than the mills but run higher volume
    LineFamily.ASSEMBLY: FamilyProfile(
        running_energy_base_kw=5.0,
        running_energy_spread_kw=3.0,
        running_vibration_base=0.5,
        running_vibration_spread=0.5,
        target_parts=2000,
        parts_per_minute_base=5.0,
        parts_per_minute_spread=5.0,
        initial_energy_base_kw=5.0,
        initial_energy_spread_kw=5.0,
        hourly_production_max=100,
    ),
}


@dataclass(frozen=True)
class Readings:
    """Physical readings and production outcome of one tick."""

    energy_kw: float
    temperature: float
    vibration: float
    produced: bool = False
    defect: bool = False


def next_status(status: MachineStatus, r: float) -> MachineStatus:
    """Apply the autonomous transition rules to one uniform draw."""
    if status == MachineStatus.RUNNING and r < RUNNING_TO_DOWN:
        return MachineStatus.DOWN
    if status == MachineStatus.DOWN and r < DOWN_TO_IDLE:
        return MachineStatus.IDLE
    if status == MachineStatus.IDLE and r < IDLE_TO_RUNNING:
        return MachineStatus.RUNNING
    return status


def simulate_readings(
    status: MachineStatus,
    family: LineFamily,
    temperature: float,
    rng: random.Random,
) -> Readings:
    """Derive this tick's readings from the (new) status."""
    if status == MachineStatus.RUNNING:
        profile = FAMILY_PROFILES[family]
        energy = profile.running_energy_base_kw + rng.random() * profile.running_energy_spread_kw
        temp = min(MAX_TEMPERATURE, temperature + RUNNING_HEAT_STEP)
        vibration = profile.running_vibration_base + rng.random() * profile.running_vibration_spread

        produced = rng.random() >= NO_PART_PROBABILITY
        defect = produced and rng.random() < DEFECT_PROBABILITY
        return Readings(energy, temp, vibration, produced=produced, defect=defect)

    if status == MachineStatus.IDLE:
        energy = IDLE_ENERGY_BASE_KW + rng.random() * IDLE_ENERGY_SPREAD_KW
        temp = max(IDLE_MIN_TEMPERATURE, temperature - IDLE_COOL_STEP)
        return Readings(energy, temp, IDLE_VIBRATION)

    # DOWN and MAINTENANCE: powered down, cooling
    temp = max(DOWN_MIN_TEMPERATURE, temperature - DOWN_COOL_STEP)
    return Readings(DOWN_ENERGY_KW, temp, DOWN_VIBRATION)


def step_machine(machine: Machine, rng: random.Random, now: datetime) -> Machine:
    """Advance one machine by exactly one tick and return the new value."""
    status = next_status(machine.status, rng.random())
    if status != machine.status:
        logger.debug(f"{machine.id}: {machine.status.value} -> {status.value}")

    readings = simulate_readings(status, machine.family, machine.temperature, rng)

    total_parts = machine.total_parts + (1 if readings.produced else 0)
    defect_parts = machine.defect_parts + (1 if readings.defect else 0)

    updated = apply_metrics(
        dataclasses.replace(
            machine,
            status=status,
            total_parts=total_parts,
            defect_parts=defect_parts,
            energy_consumption_kw=readings.energy_kw,
            temperature=readings.temperature,
            vibration=readings.vibration,
            downtime_log=downtime.apply_transition(
                machine.downtime_log, machine.status, status, now
            ),
            energy_history=history.push_sample(
                machine.energy_history, readings.energy_kw, now, history.ENERGY_HISTORY_SIZE
            ),
            hourly_production=history.record_production(
                machine.hourly_production, readings.produced
            ),
        )
    )

    # OEE-based histories need the freshly computed OEE
    return dataclasses.replace(
        updated,
        oee_history=history.push_sample(
            machine.oee_history, updated.oee, now, history.OEE_HISTORY_SIZE
        ),
        hourly_oee=history.overwrite_last(machine.hourly_oee, updated.oee),
    )


def create_machine(
    machine_id: str,
    name: str,
    part_name: str,
    rng: random.Random,
    now: datetime,
    operator_name: str = "",
) -> Machine:
    """Create a machine with randomized but bounded starting values."""
    family = LineFamily.for_machine_id(machine_id)
    profile = FAMILY_PROFILES[family]
    performance_factor = 0.8 + rng.random() * 0.2

    machine = Machine(
        id=machine_id,
        name=name,
        status=MachineStatus.RUNNING if rng.random() > 0.1 else MachineStatus.IDLE,
        operator_name=operator_name,
        part_name=part_name,
        target_parts=profile.target_parts,
        availability=(90 + rng.random() * 10) * performance_factor,
        performance=(85 + rng.random() * 15) * performance_factor,
        # Seed value only; replaced by the calculator below
        quality=(95 + rng.random() * 5) * performance_factor,
        total_parts=int(rng.random() * 500) + 100,
        defect_parts=0,
        parts_per_minute=profile.parts_per_minute_base
        + rng.random() * profile.parts_per_minute_spread,
        energy_consumption_kw=profile.initial_energy_base_kw
        + rng.random() * profile.initial_energy_spread_kw,
        total_energy_kwh=float(int(rng.random() * 1000)),
        temperature=30 + rng.random() * 15,
        vibration=0.2 + rng.random() * 0.8,
        operating_time_minutes=240,
        downtime_log=downtime.generate_past_downtime(int(rng.random() * 5) + 2, rng, now),
        hourly_production=history.seed_hourly_production(rng, profile.hourly_production_max),
        hourly_oee=history.seed_hourly_oee(rng),
        energy_history=history.seed_history(rng, now, base=20.0, spread=5.0),
        oee_history=history.seed_history(
            rng, now, base=75.0, spread=15.0, size=history.OEE_HISTORY_SIZE
        ),
    )
    return apply_metrics(machine)
