"""Tick drivers for simulated production lines.

A ``FleetSimulator`` owns one line's fleet value and advances it on a fixed
wall-clock interval from a background thread. Ticks and operator edits are
serialized through one lock, and every new fleet is handed to listeners and
the publisher before the lock is released, so snapshots go out in the order
they were made. Readers only ever see whole pre-tick or post-tick fleets.

A ``Factory`` groups the two lines (10 CNC mills, 20 assembly stations) and
optionally publishes their snapshots over MQTT.
"""

import logging
import random
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from . import fleet as fleet_ops
from .config import Config
from .metrics import FleetSummary, summarize_fleet
from .models import LineFamily, Machine, MachineStatus
from .mqtt_client import MQTTClient

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)

Snapshot = Tuple[Machine, ...]
SnapshotListener = Callable[[LineFamily, Snapshot], None]


class FleetSimulator:
    """Tick driver for one production line."""

    def __init__(
        self,
        family: LineFamily,
        config: Optional[Config] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        publisher: Optional[MQTTClient] = None,
    ):
        self.family = family
        self.config = config or Config.default()

        if rng is not None:
            self._rng = rng
        elif self.config.simulation.random_seed is not None:
            # Per-line stream so the two lines never replay the same draws
            self._rng = random.Random(f"{self.config.simulation.random_seed}:{family.value}")
        else:
            self._rng = random.Random()

        self._clock = clock or _utcnow
        self._publisher = publisher
        self._listeners: List[SnapshotListener] = []

        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._tick_thread: Optional[threading.Thread] = None
        self._tick_count = 0

        self._fleet: Snapshot = tuple(
            fleet_ops.initialize_fleet(family, self._rng, self._clock())
        )

    @property
    def snapshot(self) -> Snapshot:
        """The most recently published fleet."""
        return self._fleet

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def running(self) -> bool:
        return self._tick_thread is not None and self._tick_thread.is_alive()

    @property
    def interval_s(self) -> float:
        return self.config.simulation.tick_interval_ms / 1000.0

    def add_listener(self, listener: SnapshotListener) -> None:
        """Register a callback receiving every published snapshot."""
        self._listeners.append(listener)

    def summary(self) -> FleetSummary:
        return summarize_fleet(self._fleet)

    def find(self, machine_id: str) -> Optional[Machine]:
        return fleet_ops.find_machine(self._fleet, machine_id)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> bool:
        """Start ticking in a background thread."""
        if self.running:
            logger.warning(f"{self.family.value} line already running")
            return False

        self._stop_event.clear()
        self._tick_thread = threading.Thread(
            target=self._tick_loop, name=f"tick-{self.family.value}", daemon=True
        )
        self._tick_thread.start()
        logger.info(
            f"{self.family.value} line started ({len(self._fleet)} machines, "
            f"every {self.interval_s:.1f}s)"
        )
        return True

    def stop(self) -> None:
        """Stop ticking. The last published snapshot is kept as is."""
        self._stop_event.set()
        if self._tick_thread:
            self._tick_thread.join(timeout=5)
        self._tick_thread = None
        logger.info(f"{self.family.value} line stopped after {self._tick_count} ticks")

    def regenerate(self) -> Snapshot:
        """Replace the fleet with a freshly seeded one."""
        with self._lock:
            self._fleet = tuple(
                fleet_ops.initialize_fleet(self.family, self._rng, self._clock())
            )
            self._tick_count = 0
            snapshot = self._fleet
            self._publish(snapshot)
        logger.info(f"{self.family.value} line regenerated")
        return snapshot

    def _tick_loop(self) -> None:
        """Fire one tick per interval until stopped."""
        while not self._stop_event.wait(self.interval_s):
            try:
                self.tick_once()
            except Exception as e:
                logger.error(f"Error in {self.family.value} tick loop: {e}")

    def tick_once(self) -> Snapshot:
        """Advance the whole line by one tick and publish the result."""
        with self._lock:
            next_fleet = fleet_ops.tick(self._fleet, self._rng, self._clock())
            self._fleet = tuple(next_fleet)
            self._tick_count += 1
            snapshot = self._fleet
            self._publish(snapshot)

        down = sum(1 for m in snapshot if m.status == MachineStatus.DOWN)
        logger.debug(f"{self.family.value} tick {self._tick_count}: {down} machines down")
        return snapshot

    # =========================================================================
    # External edits (serialized with ticks)
    # =========================================================================

    def update_config(self, machine_id: str, updates: Dict[str, Any]) -> Snapshot:
        with self._lock:
            self._fleet = tuple(fleet_ops.update_config(self._fleet, machine_id, updates))
            snapshot = self._fleet
            self._publish(snapshot)
        return snapshot

    def reassign_downtime_reason(self, machine_id: str, reason: str) -> Snapshot:
        with self._lock:
            self._fleet = tuple(
                fleet_ops.reassign_downtime_reason(self._fleet, machine_id, reason)
            )
            snapshot = self._fleet
            self._publish(snapshot)
        return snapshot

    def set_status(self, machine_id: str, status: MachineStatus) -> Snapshot:
        with self._lock:
            self._fleet = tuple(
                fleet_ops.set_status(self._fleet, machine_id, status, self._clock())
            )
            snapshot = self._fleet
            self._publish(snapshot)
        return snapshot

    # =========================================================================
    # Publishing
    # =========================================================================

    def _publish(self, snapshot: Snapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(self.family, snapshot)
            except Exception as e:
                logger.error(f"Snapshot listener failed: {e}")

        if self._publisher is not None:
            try:
                self._publisher.publish_snapshot(
                    self.family, snapshot, summarize_fleet(snapshot)
                )
            except Exception as e:
                logger.error(f"Failed to publish {self.family.value} snapshot: {e}")


class Factory:
    """Both production lines, each with its own independent tick driver."""

    def __init__(
        self,
        config: Optional[Config] = None,
        mqtt_client: Optional[MQTTClient] = None,
        families: Optional[Iterable[LineFamily]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or Config.default()

        if mqtt_client:
            self._mqtt: Optional[MQTTClient] = mqtt_client
            self._mqtt.on_config_edit = self.update_config
            self._mqtt.on_reason_change = self.reassign_downtime_reason
            self._mqtt.on_status_change = self.set_status
        elif self.config.mqtt.enabled:
            self._mqtt = MQTTClient(
                self.config.mqtt,
                self.config.topics,
                on_config_edit=self.update_config,
                on_reason_change=self.reassign_downtime_reason,
                on_status_change=self.set_status,
            )
        else:
            self._mqtt = None

        families = list(families) if families is not None else self.config.simulation.line_families
        self.lines: Dict[LineFamily, FleetSimulator] = {
            family: FleetSimulator(family, self.config, clock=clock, publisher=self._mqtt)
            for family in families
        }

    def line(self, family: LineFamily) -> FleetSimulator:
        return self.lines[family]

    def line_for(self, machine_id: str) -> Optional[FleetSimulator]:
        """The line owning ``machine_id``, if that line is simulated."""
        simulator = self.lines.get(LineFamily.for_machine_id(machine_id))
        if simulator is None or simulator.find(machine_id) is None:
            logger.warning(f"No simulated line owns machine {machine_id}")
            return None
        return simulator

    def machines(self) -> Sequence[Machine]:
        return [m for simulator in self.lines.values() for m in simulator.snapshot]

    def start(self, dry_run: bool = False) -> bool:
        """Connect the publisher (if any) and start every line."""
        if self._mqtt is not None and not self._mqtt.connect(dry_run=dry_run):
            logger.error("Failed to connect to MQTT broker")
            return False

        for simulator in self.lines.values():
            simulator.start()
        return True

    def stop(self) -> None:
        for simulator in self.lines.values():
            simulator.stop()
        if self._mqtt is not None:
            self._mqtt.disconnect()

    def update_config(self, machine_id: str, updates: Dict[str, Any]) -> None:
        simulator = self.line_for(machine_id)
        if simulator:
            simulator.update_config(machine_id, updates)

    def reassign_downtime_reason(self, machine_id: str, reason: str) -> None:
        simulator = self.line_for(machine_id)
        if simulator:
            simulator.reassign_downtime_reason(machine_id, reason)

    def set_status(self, machine_id: str, status: MachineStatus) -> None:
        simulator = self.line_for(machine_id)
        if simulator:
            simulator.set_status(machine_id, status)
