"""Shared fixtures and a scripted random source for deterministic ticks."""

import dataclasses
import random
from datetime import datetime

import pytest

from oee_fleet_sim.machine import create_machine
from oee_fleet_sim.models import MachineStatus

NOW = datetime(2024, 3, 4, 10, 30, 0)


class ScriptedRandom(random.Random):
    """Random source returning scripted draws, then ``default`` (or real draws)."""

    def __init__(self, draws=(), default=None):
        super().__init__(0)
        self._draws = list(draws)
        self._default = default

    def random(self):
        if self._draws:
            return self._draws.pop(0)
        if self._default is not None:
            return self._default
        return super().random()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def cnc_machine():
    """A CNC mill with a full seeded history, forced to RUNNING."""
    machine = create_machine("CNC-01", "CNC Mill 01", "Piston Rod", random.Random(7), NOW)
    return dataclasses.replace(machine, status=MachineStatus.RUNNING, temperature=40.0)


@pytest.fixture
def asm_machine():
    machine = create_machine("ASM-01", "OP10 - Frame Load", "Model X Chassis", random.Random(8), NOW)
    return dataclasses.replace(machine, status=MachineStatus.RUNNING, temperature=40.0)
