from __future__ import annotations

import logging
import math
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, List, Mapping, Optional, Tuple

from pygame.math import Vector2

from .agent import AgentRole, SwarmAgent
from .config import SwarmConfig
from .rng import DeterministicRng
from .spatial_grid import create_neighbor_index
from ..systems import emergence, integrator, metrics as metrics_system
from ..types.emergence import EmergenceReport
from ..types.metrics import NeighborhoodStats, SwarmMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotWorld
from ..utils.math2d import heading_from_velocity, wrap_coordinate

logger = logging.getLogger(__name__)

AGENT_CONFIG_KEYS = frozenset(
    {
        "position",
        "velocity",
        "max_force",
        "max_speed",
        "perception_radius",
        "separation_radius",
        "role",
        "fitness",
    }
)
_POSITIVE_KEYS = ("max_force", "max_speed", "perception_radius", "separation_radius")


@dataclass(frozen=True, slots=True)
class Bounds:
    width: float
    height: float

    @property
    def center(self) -> Tuple[float, float]:
        return self.width * 0.5, self.height * 0.5


def _as_vector(value: Any, name: str) -> Vector2:
    if isinstance(value, Mapping):
        value = (value.get("x"), value.get("y"))
    try:
        vector = Vector2(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a 2-D vector, got {value!r}") from exc
    if not (math.isfinite(vector.x) and math.isfinite(vector.y)):
        raise ValueError(f"{name} must be finite, got {value!r}")
    return vector


def _as_number(raw: Any, name: str, positive: bool) -> float:
    requirement = "a positive number" if positive else "a finite number"
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be {requirement}, got {raw!r}") from exc
    if not math.isfinite(value) or (positive and value <= 0.0):
        raise ValueError(f"{name} must be {requirement}, got {raw!r}")
    return value


def _as_role(value: Any) -> AgentRole:
    try:
        return AgentRole(value)
    except ValueError as exc:
        raise ValueError(f"Unknown agent role: {value!r}") from exc


class SwarmEngine:
    """Boids flocking simulation over a toroidal 2-D arena.

    Hold an instance and call its operations; the class is not meant to be subclassed.
    Not thread-safe: metric queries must not overlap `update_swarm`.
    """

    def __init__(self, config: SwarmConfig | None = None, rng: DeterministicRng | None = None):
        self._config = config if config is not None else SwarmConfig()
        if not (self._config.width > 0 and self._config.height > 0):
            raise ValueError(f"Arena bounds must be positive, got {self._config.width}x{self._config.height}")
        self._bounds = Bounds(float(self._config.width), float(self._config.height))
        self._rng = rng if rng is not None else DeterministicRng(self._config.seed)
        self._index = create_neighbor_index(self._config.neighbor_index, self._config.cell_size)
        self._agents: List[SwarmAgent] = []
        self._generation = 0
        self._next_id = 0
        self._history: Deque[EmergenceReport] = deque(maxlen=self._config.emergence_history_limit)

    @property
    def config(self) -> SwarmConfig:
        return self._config

    @property
    def bounds(self) -> Bounds:
        return self._bounds

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def agent_count(self) -> int:
        return len(self._agents)

    @property
    def emergence_history(self) -> Tuple[EmergenceReport, ...]:
        return tuple(self._history)

    def add_agent(
        self,
        config: Optional[Mapping[str, Any]] = None,
        rng: DeterministicRng | None = None,
    ) -> SwarmAgent:
        """Create one agent, filling unspecified fields from the configured defaults.

        Missing position and velocity are sampled from `rng` (or the engine's source).
        Raises `ValueError` for unknown keys or non-positive limits; nothing is stored then.
        Returns a copy of the stored agent.
        """
        overrides = dict(config or {})
        unknown = set(overrides) - AGENT_CONFIG_KEYS
        if unknown:
            raise ValueError(f"Unknown agent config keys: {sorted(unknown)}")
        source = rng if rng is not None else self._rng
        defaults = self._config.agent
        width = self._bounds.width
        height = self._bounds.height

        if "position" in overrides:
            position = _as_vector(overrides["position"], "position")
            position.update(wrap_coordinate(position.x, width), wrap_coordinate(position.y, height))
        else:
            position = Vector2(source.next_below(width), source.next_below(height))
        if "velocity" in overrides:
            velocity = _as_vector(overrides["velocity"], "velocity")
        else:
            spread = defaults.initial_velocity_range
            velocity = Vector2(source.next_range(-spread, spread), source.next_range(-spread, spread))

        limits: Dict[str, float] = {
            key: _as_number(overrides.get(key, getattr(defaults, key)), key, positive=True)
            for key in _POSITIVE_KEYS
        }

        agent = SwarmAgent(
            id=self._next_id,
            position=position,
            velocity=velocity,
            role=_as_role(overrides.get("role", defaults.role)),
            fitness=_as_number(overrides.get("fitness", 0.0), "fitness", positive=False),
            **limits,
        )
        self._next_id += 1
        self._agents.append(agent)
        logger.debug("Added agent %d at (%.2f, %.2f)", agent.id, position.x, position.y)
        return agent.copy()

    def update_swarm(self) -> None:
        """Advance every agent by one tick against the same pre-tick snapshot."""
        integrator.step(
            self._agents,
            self._index,
            self._config.weights,
            self._bounds.width,
            self._bounds.height,
        )
        self._generation += 1

    def get_agents(self) -> List[SwarmAgent]:
        """Detached copies with `fitness` recomputed from the current position and velocity."""
        width = self._bounds.width
        height = self._bounds.height
        copies = []
        for agent in self._agents:
            copy = agent.copy()
            copy.fitness = metrics_system.fitness(agent, width, height)
            copies.append(copy)
        return copies

    def clear_agents(self) -> None:
        self._agents = []
        self._generation = 0
        self._next_id = 0
        self._history.clear()
        self._index.rebuild(self._agents)
        logger.debug("Swarm cleared")

    def detect_emergence(self) -> EmergenceReport:
        _, _, report = self._evaluate()
        return report

    def calculate_collective_intelligence(self) -> float:
        self._index.rebuild(self._agents)
        stats = metrics_system.neighborhood_stats(
            self._agents, self._index, self._bounds.width, self._bounds.height
        )
        return self._collective_intelligence(stats)

    def get_swarm_metrics(self) -> SwarmMetrics:
        stats, clustering, report = self._evaluate()
        return metrics_system.create_metrics(self._agents, stats, clustering, report)

    def snapshot(self) -> Snapshot:
        stats, clustering, report = self._evaluate()
        swarm_metrics = metrics_system.create_metrics(self._agents, stats, clustering, report)
        metadata = SnapshotMetadata(
            seed=self._rng.seed,
            config_version=self._config.config_version,
            neighbor_index=self._config.neighbor_index,
            patterns=report.pattern_names(),
            self_organization_level=report.self_organization_level,
        )
        return Snapshot(
            generation=self._generation,
            metrics=swarm_metrics,
            agents=[self.agent_payload(agent) for agent in self._agents],
            world=SnapshotWorld(width=self._bounds.width, height=self._bounds.height),
            metadata=metadata,
        )

    def _evaluate(self) -> Tuple[NeighborhoodStats, float, EmergenceReport]:
        width = self._bounds.width
        height = self._bounds.height
        thresholds = self._config.emergence
        self._index.rebuild(self._agents)
        stats = metrics_system.neighborhood_stats(self._agents, self._index, width, height)
        clustering = metrics_system.clustering_coefficient(
            self._agents, self._index, thresholds.min_cluster_size
        )
        patterns = emergence.detect_patterns(self._agents, stats, clustering, width, height, thresholds)
        report = EmergenceReport(
            has_emergence=bool(patterns),
            patterns_detected=patterns,
            collective_intelligence=self._collective_intelligence(stats),
            self_organization_level=emergence.self_organization_level(self._generation, clustering, thresholds),
        )
        self._history.append(report)
        if report.has_emergence:
            logger.debug("Generation %d emergence: %s", self._generation, ", ".join(report.pattern_names()))
        return stats, clustering, report

    def _collective_intelligence(self, stats: NeighborhoodStats) -> float:
        return metrics_system.collective_intelligence(
            self._agents,
            stats,
            self._bounds.width,
            self._bounds.height,
            self._config.emergence.collective_intelligence_cap,
        )

    def agent_payload(self, agent: SwarmAgent) -> Dict[str, Any]:
        return {
            "id": agent.id,
            "x": agent.position.x,
            "y": agent.position.y,
            "vx": agent.velocity.x,
            "vy": agent.velocity.y,
            "ax": agent.acceleration.x,
            "ay": agent.acceleration.y,
            "speed": agent.velocity.length(),
            "heading": heading_from_velocity(agent.velocity),
            "role": agent.role.value,
            "fitness": metrics_system.fitness(agent, self._bounds.width, self._bounds.height),
        }
