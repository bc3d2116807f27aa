"""Data model for simulated machines, downtime events and histories.

Machines are treated as values: the simulation engine never mutates a
Machine it was given, it builds a new one with ``dataclasses.replace`` and
fresh lists. Snapshots handed to readers therefore stay consistent.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List


class MachineStatus(Enum):
    """Operational status of a machine."""

    RUNNING = "RUNNING"
    IDLE = "IDLE"
    DOWN = "DOWN"
    MAINTENANCE = "MAINTENANCE"


class LineFamily(Enum):
    """Asset family of a production line."""

    CNC = "cnc"
    ASSEMBLY = "assembly"

    @classmethod
    def for_machine_id(cls, machine_id: str) -> "LineFamily":
        """Family is encoded in the id prefix (ASM-## vs. CNC-##)."""
        if machine_id.startswith("ASM"):
            return cls.ASSEMBLY
        return cls.CNC


# Fields an operator may edit from the configuration view
CONFIG_FIELDS: FrozenSet[str] = frozenset(
    {
        "name",
        "operator_name",
        "part_name",
        "shift_start_time",
        "shift_end_time",
        "break_start_time",
        "break_end_time",
        "target_parts",
    }
)


@dataclass
class DowntimeEvent:
    """One entry of a machine's downtime log."""

    id: str
    timestamp: int  # epoch milliseconds
    reason: str
    duration_minutes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp_ms": self.timestamp,
            "reason": self.reason,
            "duration_minutes": self.duration_minutes,
        }


@dataclass
class HistoryPoint:
    """Timestamped sample in a rolling history."""

    time: str  # ISO-8601
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"time": self.time, "value": round(self.value, 3)}


@dataclass
class HourlySlot:
    """Fixed shift-hour bucket (production count or OEE value)."""

    hour: str
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"hour": self.hour, "value": self.value}


@dataclass
class Machine:
    """A simulated CNC mill or assembly station."""

    id: str
    name: str
    status: MachineStatus = MachineStatus.IDLE

    # Configuration (operator-editable)
    operator_name: str = ""
    part_name: str = ""
    shift_start_time: str = "08:00"
    shift_end_time: str = "16:00"
    break_start_time: str = "12:00"
    break_end_time: str = "12:30"
    target_parts: int = 1000

    # OEE components (0-100)
    availability: float = 100.0
    performance: float = 100.0
    quality: float = 100.0
    oee: float = 100.0

    # Production
    total_parts: int = 0
    good_parts: int = 0
    defect_parts: int = 0
    parts_per_minute: float = 0.0

    # Energy and operational readings
    energy_consumption_kw: float = 0.0
    total_energy_kwh: float = 0.0
    temperature: float = 25.0  # Celsius
    vibration: float = 0.0  # mm/s
    operating_time_minutes: int = 0

    # Histories
    downtime_log: List[DowntimeEvent] = field(default_factory=list)  # newest first
    hourly_production: List[HourlySlot] = field(default_factory=list)
    hourly_oee: List[HourlySlot] = field(default_factory=list)
    energy_history: List[HistoryPoint] = field(default_factory=list)
    oee_history: List[HistoryPoint] = field(default_factory=list)

    @property
    def family(self) -> LineFamily:
        return LineFamily.for_machine_id(self.id)

    @property
    def total_downtime_minutes(self) -> int:
        return sum(event.duration_minutes for event in self.downtime_log)

    def to_dict(self) -> Dict[str, Any]:
        """Full JSON-ready payload of the machine."""
        return {
            "id": self.id,
            "name": self.name,
            "family": self.family.value,
            "status": self.status.value,
            "config": {
                "operator_name": self.operator_name,
                "part_name": self.part_name,
                "shift_start_time": self.shift_start_time,
                "shift_end_time": self.shift_end_time,
                "break_start_time": self.break_start_time,
                "break_end_time": self.break_end_time,
                "target_parts": self.target_parts,
            },
            "oee": {
                "availability_pct": round(self.availability, 2),
                "performance_pct": round(self.performance, 2),
                "quality_pct": round(self.quality, 2),
                "oee_pct": round(self.oee, 2),
            },
            "production": {
                "total_parts": self.total_parts,
                "good_parts": self.good_parts,
                "defect_parts": self.defect_parts,
                "target_parts": self.target_parts,
                "parts_per_minute": round(self.parts_per_minute, 2),
            },
            "readings": {
                "energy_consumption_kw": round(self.energy_consumption_kw, 2),
                "total_energy_kwh": round(self.total_energy_kwh, 1),
                "temperature_c": round(self.temperature, 2),
                "vibration_mms": round(self.vibration, 3),
                "operating_time_minutes": self.operating_time_minutes,
            },
            "downtime_log": [event.to_dict() for event in self.downtime_log],
            "total_downtime_minutes": self.total_downtime_minutes,
            "hourly_production": [slot.to_dict() for slot in self.hourly_production],
            "hourly_oee": [slot.to_dict() for slot in self.hourly_oee],
            "energy_history": [point.to_dict() for point in self.energy_history],
            "oee_history": [point.to_dict() for point in self.oee_history],
        }
