"""Configuration management for the simulator."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .models import LineFamily


@dataclass
class MQTTConfig:
    """MQTT broker configuration."""

    enabled: bool = False
    broker: str = "localhost"
    port: int = 1883
    username: str = ""
    password: str = ""
    client_id: str = "oee-fleet-simulator"
    qos: int = 1


@dataclass
class TopicConfig:
    """Topic layout for published snapshots and control messages."""

    topic_prefix: str = "oee/v1"
    site: str = "plant_01"
    control_root: str = "oee-fleet-sim"


@dataclass
class SimulationConfig:
    """Simulation parameters."""

    tick_interval_ms: int = 2000
    random_seed: Optional[int] = None
    lines: List[str] = field(default_factory=lambda: ["cnc", "assembly"])

    @property
    def line_families(self) -> List[LineFamily]:
        return [LineFamily(line) for line in self.lines]


@dataclass
class Config:
    """Main configuration container."""

    mqtt: MQTTConfig = field(default_factory=MQTTConfig)
    topics: TopicConfig = field(default_factory=TopicConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)

    @classmethod
    def default(cls) -> "Config":
        return cls()

    @classmethod
    def from_yaml(cls, config_path: Path) -> "Config":
        """Load configuration from YAML file."""
        if not config_path.exists():
            return cls.default()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls._from_dict(data)

    @classmethod
    def from_env(cls, base: Optional["Config"] = None) -> "Config":
        """Override configuration from environment variables."""
        config = base or cls.default()

        config.mqtt.broker = os.getenv("MQTT_BROKER", config.mqtt.broker)
        config.mqtt.port = int(os.getenv("MQTT_PORT", config.mqtt.port))
        config.mqtt.username = os.getenv("MQTT_USERNAME", config.mqtt.username)
        config.mqtt.password = os.getenv("MQTT_PASSWORD", config.mqtt.password)
        enabled = os.getenv("MQTT_ENABLED")
        if enabled is not None:
            config.mqtt.enabled = enabled.lower() in ("1", "true", "yes")

        config.topics.site = os.getenv("SIM_SITE", config.topics.site)

        interval = os.getenv("SIM_TICK_INTERVAL_MS")
        if interval:
            config.simulation.tick_interval_ms = int(interval)
        seed = os.getenv("SIM_RANDOM_SEED")
        if seed:
            config.simulation.random_seed = int(seed)

        return config

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary."""
        config = cls.default()

        if "mqtt" in data:
            mqtt_data = data["mqtt"] or {}
            config.mqtt = MQTTConfig(
                enabled=mqtt_data.get("enabled", config.mqtt.enabled),
                broker=mqtt_data.get("broker", config.mqtt.broker),
                port=mqtt_data.get("port", config.mqtt.port),
                username=mqtt_data.get("username", config.mqtt.username),
                password=mqtt_data.get("password", config.mqtt.password),
                client_id=mqtt_data.get("client_id", config.mqtt.client_id),
                qos=mqtt_data.get("qos", config.mqtt.qos),
            )

        if "topics" in data:
            topic_data = data["topics"] or {}
            config.topics = TopicConfig(
                topic_prefix=topic_data.get("topic_prefix", config.topics.topic_prefix),
                site=topic_data.get("site", config.topics.site),
                control_root=topic_data.get("control_root", config.topics.control_root),
            )

        if "simulation" in data:
            sim_data = data["simulation"] or {}
            config.simulation = SimulationConfig(
                tick_interval_ms=sim_data.get(
                    "tick_interval_ms", config.simulation.tick_interval_ms
                ),
                random_seed=sim_data.get("random_seed"),
                lines=list(sim_data.get("lines", config.simulation.lines)),
            )

        return config

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file."""
        data = {
            "mqtt": {
                "enabled": self.mqtt.enabled,
                "broker": self.mqtt.broker,
                "port": self.mqtt.port,
                "username": self.mqtt.username,
                "password": self.mqtt.password,
                "client_id": self.mqtt.client_id,
                "qos": self.mqtt.qos,
            },
            "topics": {
                "topic_prefix": self.topics.topic_prefix,
                "site": self.topics.site,
                "control_root": self.topics.control_root,
            },
            "simulation": {
                "tick_interval_ms": self.simulation.tick_interval_ms,
                "random_seed": self.simulation.random_seed,
                "lines": list(self.simulation.lines),
            },
        }

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
