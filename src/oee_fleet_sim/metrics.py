"""OEE metric derivation and fleet-level aggregates.

OEE = Availability x Performance x Quality, each expressed in percent.
Quality is always derived from the part counters, never set directly.
"""

import dataclasses
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, NamedTuple

from .models import Machine, MachineStatus

TOP_DOWNTIME_REASONS = 5


class OEEMetrics(NamedTuple):
    """Derived KPIs for one machine."""

    good_parts: int
    quality: float
    oee: float


def calculate_metrics(
    availability: float,
    performance: float,
    total_parts: int,
    defect_parts: int,
) -> OEEMetrics:
    """Derive good parts, quality and OEE from raw counts and factors."""
    good_parts = total_parts - defect_parts
    quality = (good_parts / total_parts) * 100 if total_parts > 0 else 100.0
    oee = (availability / 100) * (performance / 100) * (quality / 100) * 100
    return OEEMetrics(good_parts=good_parts, quality=quality, oee=oee)


def apply_metrics(machine: Machine) -> Machine:
    """Return a copy of ``machine`` with good parts, quality and OEE recomputed."""
    metrics = calculate_metrics(
        machine.availability,
        machine.performance,
        machine.total_parts,
        machine.defect_parts,
    )
    return dataclasses.replace(
        machine,
        good_parts=metrics.good_parts,
        quality=metrics.quality,
        oee=metrics.oee,
    )


# =============================================================================
# Fleet aggregates
# =============================================================================


@dataclass
class FleetSummary:
    """Line-level KPIs shown on the overview and sent with each snapshot."""

    machine_count: int = 0
    average_oee: float = 0.0
    active_alarms: int = 0
    status_counts: Dict[str, int] = field(default_factory=dict)
    total_parts: int = 0
    total_good_parts: int = 0
    total_defect_parts: int = 0
    total_energy_kw: float = 0.0
    average_temperature: float = 0.0
    total_downtime_minutes: int = 0
    downtime_by_reason: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "machine_count": self.machine_count,
            "average_oee_pct": round(self.average_oee, 2),
            "active_alarms": self.active_alarms,
            "status_counts": dict(self.status_counts),
            "total_parts": self.total_parts,
            "total_good_parts": self.total_good_parts,
            "total_defect_parts": self.total_defect_parts,
            "total_energy_kw": round(self.total_energy_kw, 2),
            "average_temperature_c": round(self.average_temperature, 2),
            "total_downtime_minutes": self.total_downtime_minutes,
            "downtime_by_reason": dict(self.downtime_by_reason),
        }


def summarize_fleet(machines: Iterable[Machine]) -> FleetSummary:
    """Aggregate a fleet snapshot into line-level KPIs."""
    machines = list(machines)
    summary = FleetSummary(
        status_counts={status.value: 0 for status in MachineStatus},
    )
    if not machines:
        return summary

    reasons: Counter = Counter()
    for m in machines:
        summary.status_counts[m.status.value] += 1
        summary.total_parts += m.total_parts
        summary.total_good_parts += m.good_parts
        summary.total_defect_parts += m.defect_parts
        summary.total_energy_kw += m.energy_consumption_kw
        summary.total_downtime_minutes += m.total_downtime_minutes
        reasons.update(event.reason for event in m.downtime_log)

    count = len(machines)
    summary.machine_count = count
    summary.average_oee = sum(m.oee for m in machines) / count
    summary.average_temperature = sum(m.temperature for m in machines) / count
    summary.active_alarms = summary.status_counts[MachineStatus.DOWN.value]
    summary.downtime_by_reason = dict(reasons.most_common(TOP_DOWNTIME_REASONS))
    return summary
