"""Fleet-level operations: initialization, ticking and operator edits.

Every function takes a fleet (sequence of Machines) and returns a new list.
Requests that reference an unknown machine or carry malformed data are logged
and ignored so a stale UI reference can never break the simulation.
"""

import dataclasses
import logging
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from faker import Faker

from . import downtime
from .machine import create_machine, step_machine
from .models import CONFIG_FIELDS, LineFamily, Machine, MachineStatus

logger = logging.getLogger(__name__)

CNC_LINE_SIZE = 10
ASSEMBLY_LINE_SIZE = 20

CNC_PARTS = [
    "Gearbox Housing",
    "Piston Rod",
    "Turbine Blade",
    "Flange Adapter",
    "Cylinder Head",
]

ASSEMBLY_PART = "Model X Chassis"

ASSEMBLY_OPS = [
    "OP10 - Frame Load",
    "OP20 - Chassis Weld",
    "OP30 - Anti-Corrosion",
    "OP40 - Axle Mount",
    "OP50 - Suspension",
    "OP60 - Engine Mount",
    "OP70 - Transmission",
    "OP80 - Exhaust Sys",
    "OP90 - Heat Shield",
    "OP100 - Battery Pack",
    "OP110 - Wiring Harness",
    "OP120 - ECU Install",
    "OP130 - Fluid Fill",
    "OP140 - Wheel Assembly",
    "OP150 - Interior Trim",
    "OP160 - Glass Fitment",
    "OP170 - Door Mount",
    "OP180 - Dyno Test",
    "OP190 - Water Test",
    "OP200 - Final QC",
]


def _resolve(rng: Optional[random.Random], now: Optional[datetime]):
    return (rng if rng is not None else random.Random()), (now or datetime.now(timezone.utc))


def initialize_fleet(
    family: LineFamily,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> List[Machine]:
    """Create a freshly seeded line: 10 CNC mills or 20 assembly stations."""
    rng, now = _resolve(rng, now)
    fake = Faker()
    fake.seed_instance(rng.getrandbits(32))

    if family == LineFamily.CNC:
        specs = [
            (f"CNC-{i + 1:02d}", f"CNC Mill {i + 1:02d}", CNC_PARTS[i % len(CNC_PARTS)])
            for i in range(CNC_LINE_SIZE)
        ]
    else:
        specs = [
            (f"ASM-{i + 1:02d}", ASSEMBLY_OPS[i], ASSEMBLY_PART)
            for i in range(ASSEMBLY_LINE_SIZE)
        ]

    machines = [
        create_machine(machine_id, name, part, rng, now, operator_name=fake.name())
        for machine_id, name, part in specs
    ]
    logger.info(f"Initialized {family.value} line with {len(machines)} machines")
    return machines


def tick(
    fleet: Sequence[Machine],
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> List[Machine]:
    """Advance every machine by one tick. Machines never read each other."""
    rng, now = _resolve(rng, now)
    return [step_machine(m, rng, now) for m in fleet]


def find_machine(fleet: Sequence[Machine], machine_id: str) -> Optional[Machine]:
    for m in fleet:
        if m.id == machine_id:
            return m
    return None


def _coerce_config(updates: Dict[str, Any]) -> Dict[str, Any]:
    accepted: Dict[str, Any] = {}
    for key, value in updates.items():
        if key not in CONFIG_FIELDS:
            logger.warning(f"Ignoring non-configurable field: {key}")
            continue
        if key == "target_parts":
            try:
                value = int(value)
            except (TypeError, ValueError):
                logger.warning(f"Ignoring invalid target_parts: {value!r}")
                continue
            if value < 0:
                logger.warning(f"Ignoring negative target_parts: {value}")
                continue
        else:
            value = str(value)
        accepted[key] = value
    return accepted


def update_config(
    fleet: Sequence[Machine], machine_id: str, updates: Dict[str, Any]
) -> List[Machine]:
    """Apply an operator edit to one machine's configuration fields."""
    if find_machine(fleet, machine_id) is None:
        logger.warning(f"Config edit for unknown machine: {machine_id}")
        return list(fleet)

    accepted = _coerce_config(updates)
    if not accepted:
        return list(fleet)

    logger.info(f"{machine_id}: config updated ({', '.join(sorted(accepted))})")
    return [
        dataclasses.replace(m, **accepted) if m.id == machine_id else m
        for m in fleet
    ]


def reassign_downtime_reason(
    fleet: Sequence[Machine], machine_id: str, reason: str
) -> List[Machine]:
    """Recategorize the most recent downtime event of one machine."""
    target = find_machine(fleet, machine_id)
    if target is None:
        logger.warning(f"Downtime reason for unknown machine: {machine_id}")
        return list(fleet)

    try:
        log = downtime.reassign_reason(target.downtime_log, reason)
    except downtime.InvalidReasonError as e:
        logger.warning(f"{machine_id}: {e}")
        return list(fleet)

    return [
        dataclasses.replace(m, downtime_log=log) if m.id == machine_id else m
        for m in fleet
    ]


def set_status(
    fleet: Sequence[Machine],
    machine_id: str,
    status: MachineStatus,
    now: Optional[datetime] = None,
) -> List[Machine]:
    """Force a machine's status (the only way into or out of MAINTENANCE)."""
    target = find_machine(fleet, machine_id)
    if target is None:
        logger.warning(f"Status change for unknown machine: {machine_id}")
        return list(fleet)
    if target.status == status:
        return list(fleet)

    now = now or datetime.now(timezone.utc)
    log = downtime.apply_transition(target.downtime_log, target.status, status, now)
    logger.info(f"{machine_id}: status set {target.status.value} -> {status.value}")
    return [
        dataclasses.replace(m, status=status, downtime_log=log) if m.id == machine_id else m
        for m in fleet
    ]
