"""OEE Fleet Simulator - synthetic machine fleet with live OEE KPIs."""

__version__ = "0.1.0"

from .config import Config
from .fleet import (
    initialize_fleet,
    reassign_downtime_reason,
    set_status,
    tick,
    update_config,
)
from .metrics import calculate_metrics, summarize_fleet
from .models import DowntimeEvent, LineFamily, Machine, MachineStatus
from .simulator import Factory, FleetSimulator

__all__ = [
    "Config",
    "DowntimeEvent",
    "Factory",
    "FleetSimulator",
    "LineFamily",
    "Machine",
    "MachineStatus",
    "calculate_metrics",
    "initialize_fleet",
    "reassign_downtime_reason",
    "set_status",
    "summarize_fleet",
    "tick",
    "update_config",
    "__version__",
]
