"""Bounded rolling histories and fixed shift-hour buckets."""

import random
from datetime import datetime, timedelta
from typing import List

from .models import HistoryPoint, HourlySlot

ENERGY_HISTORY_SIZE = 20
OEE_HISTORY_SIZE = 20
SHIFT_HOURS = 8
SHIFT_FIRST_HOUR = 8

SAMPLE_SPACING = timedelta(minutes=1)


def shift_hour_labels() -> List[str]:
    """Labels of the shift-hour buckets: 8:00 .. 15:00."""
    return [f"{h + SHIFT_FIRST_HOUR}:00" for h in range(SHIFT_HOURS)]


def push_sample(
    history: List[HistoryPoint],
    value: float,
    now: datetime,
    capacity: int = ENERGY_HISTORY_SIZE,
) -> List[HistoryPoint]:
    """Append a sample and evict the oldest ones beyond ``capacity``."""
    updated = list(history) + [HistoryPoint(time=now.isoformat(), value=value)]
    return updated[-capacity:]


def record_production(slots: List[HourlySlot], produced: bool) -> List[HourlySlot]:
    """Count a produced part in the last shift-hour bucket.

    All production of a run accrues to the final bucket; the current wall-clock
    hour is not used.
    """
    updated = list(slots)
    if produced and updated:
        last = updated[-1]
        updated[-1] = HourlySlot(hour=last.hour, value=last.value + 1)
    return updated


def overwrite_last(slots: List[HourlySlot], value: float) -> List[HourlySlot]:
    """Replace the value of the last shift-hour bucket."""
    updated = list(slots)
    if updated:
        updated[-1] = HourlySlot(hour=updated[-1].hour, value=value)
    return updated


# =============================================================================
# Seeding for fleet initialization
# =============================================================================


def seed_hourly_production(rng: random.Random, max_count: int) -> List[HourlySlot]:
    return [
        HourlySlot(hour=label, value=int(rng.random() * max_count))
        for label in shift_hour_labels()
    ]


def seed_hourly_oee(rng: random.Random) -> List[HourlySlot]:
    """OEE per shift hour in [40, 100], with the occasional bad hour."""
    slots = []
    for label in shift_hour_labels():
        base = 75 + rng.random() * 25
        penalty = 0.6 if rng.random() > 0.8 else 1.0
        slots.append(HourlySlot(hour=label, value=min(100.0, max(40.0, base * penalty))))
    return slots


def seed_history(
    rng: random.Random,
    now: datetime,
    base: float,
    spread: float,
    size: int = ENERGY_HISTORY_SIZE,
) -> List[HistoryPoint]:
    """``size`` samples one minute apart ending one minute before ``now``."""
    return [
        HistoryPoint(
            time=(now - (size - t) * SAMPLE_SPACING).isoformat(),
            value=base + rng.random() * spread,
        )
        for t in range(size)
    ]
