"""Command-line interface for the OEE Fleet Simulator."""

import json
import logging
import signal
import sys
import threading
from pathlib import Path

import click

from .config import Config
from .downtime import TPM_LOSSES
from .models import LineFamily
from .simulator import Factory, FleetSimulator

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

LINE_CHOICES = ["cnc", "assembly", "both"]


def _families(line: str):
    if line == "both":
        return [LineFamily.CNC, LineFamily.ASSEMBLY]
    return [LineFamily(line)]


def _load_config(config_path, interval_ms, seed) -> Config:
    config = Config.from_yaml(config_path) if config_path else Config.default()
    config = Config.from_env(config)
    if interval_ms is not None:
        config.simulation.tick_interval_ms = interval_ms
    if seed is not None:
        config.simulation.random_seed = seed
    return config


def _summary_line(simulator: FleetSimulator) -> str:
    s = simulator.summary()
    return (
        f"[{simulator.family.value.upper()} tick {simulator.tick_count}] "
        f"OEE: {s.average_oee:.1f}% // RUNNING: {s.status_counts['RUNNING']} "
        f"IDLE: {s.status_counts['IDLE']} DOWN: {s.active_alarms} // "
        f"PARTS: {s.total_parts} // ENERGY: {s.total_energy_kw:.1f} kW"
    )


@click.group()
@click.version_option(version="0.1.0")
def main():
    """OEE Fleet Simulator - synthetic machine fleet with live OEE KPIs.

    Simulates a 10-unit CNC mill line and a 20-unit assembly line. Each tick
    advances machine status (RUNNING / IDLE / DOWN), physical readings,
    production counts, downtime events and OEE histories.
    """
    pass


@main.command()
@click.option(
    "--line",
    "-l",
    type=click.Choice(LINE_CHOICES),
    default="both",
    help="Production line(s) to simulate",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="YAML configuration file",
)
@click.option("--interval-ms", type=click.IntRange(min=1), default=None, help="Tick interval in ms")
@click.option("--seed", type=int, default=None, help="Random seed for reproducible runs")
@click.option("--ticks", "-n", type=click.IntRange(min=1), default=None, help="Stop after N ticks")
@click.option("--mqtt/--no-mqtt", default=None, help="Publish snapshots over MQTT")
@click.option("--dry-run", is_flag=True, default=False, help="Log MQTT messages instead of sending")
@click.option("--broker", "-b", default=None, help="MQTT broker address")
@click.option("--port", "-p", type=int, default=None, help="MQTT broker port")
def run(line, config_path, interval_ms, seed, ticks, mqtt, dry_run, broker, port):
    """Run the live tick driver for one or both lines."""
    config = _load_config(config_path, interval_ms, seed)
    if mqtt is not None:
        config.mqtt.enabled = mqtt
    if broker:
        config.mqtt.broker = broker
    if port:
        config.mqtt.port = port

    factory = Factory(config, families=_families(line))
    done = threading.Event()

    def on_snapshot(family, snapshot):
        simulator = factory.line(family)
        click.echo(_summary_line(simulator))
        if ticks and all(s.tick_count >= ticks for s in factory.lines.values()):
            done.set()

    for simulator in factory.lines.values():
        simulator.add_listener(on_snapshot)

    def handle_signal(signum, frame):
        done.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    if not factory.start(dry_run=dry_run):
        click.echo("Error: could not start simulator", err=True)
        sys.exit(1)

    click.echo("Press Ctrl+C to stop")
    done.wait()
    factory.stop()


@main.command()
@click.option(
    "--line",
    "-l",
    type=click.Choice(["cnc", "assembly"]),
    default="cnc",
    help="Production line to simulate",
)
@click.option("--ticks", "-n", type=click.IntRange(min=0), default=0, help="Ticks to advance")
@click.option("--seed", type=int, default=None, help="Random seed for reproducible runs")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the full JSON payload")
def snapshot(line, ticks, seed, as_json):
    """Initialize a line, advance it without waiting and print the fleet."""
    config = Config.default()
    config.simulation.random_seed = seed
    simulator = FleetSimulator(LineFamily(line), config)
    for _ in range(ticks):
        simulator.tick_once()

    if as_json:
        payload = {
            "line": line,
            "ticks": simulator.tick_count,
            "summary": simulator.summary().to_dict(),
            "machines": [m.to_dict() for m in simulator.snapshot],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    click.echo(f"{'ID':<8}{'STATUS':<13}{'OEE %':>7}{'A %':>7}{'P %':>7}{'Q %':>7}"
               f"{'PARTS':>8}{'TEMP C':>8}{'DOWNTIME':>10}")
    for m in simulator.snapshot:
        click.echo(
            f"{m.id:<8}{m.status.value:<13}{m.oee:>7.1f}{m.availability:>7.1f}"
            f"{m.performance:>7.1f}{m.quality:>7.1f}{m.total_parts:>8}"
            f"{m.temperature:>8.1f}{m.total_downtime_minutes:>7} min"
        )
    click.echo()
    click.echo(_summary_line(simulator))


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=Path("config"),
    help="Output directory for config files",
)
def init(output):
    """Generate a sample configuration file."""
    output.mkdir(parents=True, exist_ok=True)

    cfg = Config.default()
    config_path = output / "config.yaml"
    cfg.to_yaml(config_path)

    click.echo(f"Created: {config_path}")
    click.echo()
    click.echo("Edit the config file to customize:")
    click.echo("  - Tick interval and random seed")
    click.echo("  - Simulated lines")
    click.echo("  - MQTT broker and topic settings")
    click.echo()
    click.echo(f"Run with: oee-fleet-sim run --config {config_path}")


@main.command()
def reasons():
    """List the TPM loss categories used for downtime events."""
    for i, reason in enumerate(TPM_LOSSES, start=1):
        click.echo(f"{i:>2}. {reason}")


if __name__ == "__main__":
    main()
