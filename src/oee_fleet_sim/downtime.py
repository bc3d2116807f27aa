"""Per-machine downtime ledger.

The log is ordered newest first. While a machine stays DOWN, the head event
is the open one and accumulates one minute per tick.
"""

import logging
import random
import uuid
from datetime import datetime, timedelta
from typing import List

from .models import DowntimeEvent, MachineStatus

logger = logging.getLogger(__name__)

# Total Productive Maintenance loss categories
TPM_LOSSES = (
    "Equipment Failure",
    "Setup and Adjustment",
    "Cutting Tool Replacement",
    "Startup Loss",
    "Minor Stoppages (Idling)",
    "Speed Reduction",
    "Defects and Rework",
    "Shutdown (Planned)",
    "Management Loss",
    "Operating Motion Loss",
    "Line Organization Loss",
    "Logistic Loss",
    "Measurement and Adjustment",
    "Energy Loss",
    "Die/Jig/Tool Breakage",
    "Yield Loss",
)

DEFAULT_REASON = TPM_LOSSES[0]

PAST_EVENT_WINDOW = timedelta(days=7)


class InvalidReasonError(ValueError):
    """Raised when a downtime reason is not a known TPM loss."""


def _epoch_ms(ts: datetime) -> int:
    return int(ts.timestamp() * 1000)


def open_event(log: List[DowntimeEvent], now: datetime) -> List[DowntimeEvent]:
    """Prepend a fresh, zero-duration event with the default reason."""
    event = DowntimeEvent(
        id=f"dt-{uuid.uuid4().hex[:12]}",
        timestamp=_epoch_ms(now),
        reason=DEFAULT_REASON,
        duration_minutes=0,
    )
    return [event] + list(log)


def accumulate(log: List[DowntimeEvent]) -> List[DowntimeEvent]:
    """Add one minute to the head event. Empty logs are returned unchanged."""
    if not log:
        return list(log)
    head = log[0]
    updated = DowntimeEvent(
        id=head.id,
        timestamp=head.timestamp,
        reason=head.reason,
        duration_minutes=head.duration_minutes + 1,
    )
    return [updated] + list(log[1:])


def apply_transition(
    log: List[DowntimeEvent],
    previous: MachineStatus,
    current: MachineStatus,
    now: datetime,
) -> List[DowntimeEvent]:
    """Update the ledger for a status change from ``previous`` to ``current``."""
    if current == MachineStatus.DOWN and previous != MachineStatus.DOWN:
        return open_event(log, now)
    if current == MachineStatus.DOWN and previous == MachineStatus.DOWN:
        return accumulate(log)
    return list(log)


def reassign_reason(log: List[DowntimeEvent], reason: str) -> List[DowntimeEvent]:
    """Recategorize the most recent event.

    Only the head event is touched; older events keep their reason.
    """
    if reason not in TPM_LOSSES:
        raise InvalidReasonError(f"Unknown downtime reason: {reason!r}")
    if not log:
        return list(log)
    head = log[0]
    updated = DowntimeEvent(
        id=head.id,
        timestamp=head.timestamp,
        reason=reason,
        duration_minutes=head.duration_minutes,
    )
    return [updated] + list(log[1:])


def generate_past_downtime(
    count: int, rng: random.Random, now: datetime
) -> List[DowntimeEvent]:
    """Seed a plausible downtime history from the last seven days."""
    window_ms = int(PAST_EVENT_WINDOW.total_seconds() * 1000)
    now_ms = _epoch_ms(now)
    events = []
    for i in range(count):
        events.append(
            DowntimeEvent(
                id=f"past-{i}-{uuid.uuid4().hex[:9]}",
                timestamp=now_ms - int(rng.random() * window_ms),
                reason=TPM_LOSSES[int(rng.random() * len(TPM_LOSSES))],
                duration_minutes=10 + int(rng.random() * 120),
            )
        )
    events.sort(key=lambda e: e.timestamp, reverse=True)
    return events
