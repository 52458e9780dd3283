from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


@dataclass
class AgentDefaults:
    max_force: float = 0.1
    max_speed: float = 4.0
    perception_radius: float = 50.0
    separation_radius: float = 25.0
    # Random initial velocity is drawn from [-range, range] per axis.
    initial_velocity_range: float = 2.0
    role: str = "follower"


@dataclass
class ForceWeights:
    separation: float = 1.5
    alignment: float = 1.0
    cohesion: float = 1.0


@dataclass
class EmergenceThresholds:
    flocking_alignment: float = 0.8
    flocking_cohesion: float = 0.7
    clustering: float = 0.6
    vortex_rotation: float = 0.6
    wave_velocity_difference: float = 1.0
    wave_min_agents: int = 10
    min_cluster_size: int = 3
    maturity_generations: int = 100
    collective_intelligence_cap: float = 2.0


@dataclass
class SwarmConfig:
    width: float = 1000.0
    height: float = 1000.0
    seed: int = 42
    config_version: str = "v1"
    neighbor_index: str = "pairwise"
    cell_size: float = 50.0
    emergence_history_limit: Optional[int] = None
    agent: AgentDefaults = field(default_factory=AgentDefaults)
    weights: ForceWeights = field(default_factory=ForceWeights)
    emergence: EmergenceThresholds = field(default_factory=EmergenceThresholds)

    @staticmethod
    def from_yaml(path: Path) -> "SwarmConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)


@dataclass
class AppConfig:
    swarm: SwarmConfig = field(default_factory=SwarmConfig)
    initial_agents: int = 100
    tick_interval: float = 1.0 / 30.0
    broadcast_interval: int = 2
    emergence_history_limit: int = 1000
    # Unacknowledged snapshots kept for websocket clients; oldest are dropped first.
    snapshot_queue_limit: int = 64


def load_config(raw: dict) -> SwarmConfig:
    agent = AgentDefaults(**raw.get("agent", {}))
    weights = ForceWeights(**raw.get("weights", {}))
    emergence = EmergenceThresholds(**raw.get("emergence", {}))
    swarm_values = {k: v for k, v in raw.items() if k not in {"agent", "weights", "emergence"}}
    return SwarmConfig(agent=agent, weights=weights, emergence=emergence, **swarm_values)


def load_app_config(raw: dict) -> AppConfig:
    swarm = load_config(raw.get("swarm", {}))
    app_values = {k: v for k, v in raw.items() if k != "swarm"}
    app = AppConfig(swarm=swarm, **app_values)
    if swarm.emergence_history_limit is None:
        swarm.emergence_history_limit = app.emergence_history_limit
    return app
