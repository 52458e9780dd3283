from __future__ import annotations

from typing import FrozenSet, Sequence, Set, Tuple

from ..core.agent import SwarmAgent
from ..core.config import EmergenceThresholds
from ..types.emergence import EmergencePattern
from ..types.metrics import NeighborhoodStats


def rotation_coherence(agents: Sequence[SwarmAgent], width: float, height: float) -> float:
    """Net fraction of agents turning the same way around the arena center."""
    if not agents:
        return 0.0
    center_x = width * 0.5
    center_y = height * 0.5
    clockwise = 0
    counter_clockwise = 0
    for agent in agents:
        dx = agent.position.x - center_x
        dy = agent.position.y - center_y
        cross = dx * agent.velocity.y - dy * agent.velocity.x
        if cross > 0:
            clockwise += 1
        else:
            counter_clockwise += 1
    return abs(clockwise - counter_clockwise) / len(agents)


def _mean_velocity(velocities: Sequence[Tuple[float, float]]) -> Tuple[float, float]:
    if not velocities:
        return 0.0, 0.0
    count = len(velocities)
    return sum(v[0] for v in velocities) / count, sum(v[1] for v in velocities) / count


def quadrant_velocity_difference(agents: Sequence[SwarmAgent], width: float, height: float) -> float:
    """Mean absolute velocity difference between horizontally adjacent quadrants."""
    half_w = width * 0.5
    half_h = height * 0.5
    quadrants: dict[str, list[Tuple[float, float]]] = {"tl": [], "tr": [], "bl": [], "br": []}
    for agent in agents:
        column = "l" if agent.position.x < half_w else "r"
        row = "t" if agent.position.y < half_h else "b"
        quadrants[row + column].append((agent.velocity.x, agent.velocity.y))
    tl = _mean_velocity(quadrants["tl"])
    tr = _mean_velocity(quadrants["tr"])
    bl = _mean_velocity(quadrants["bl"])
    br = _mean_velocity(quadrants["br"])
    return (abs(tl[0] - tr[0]) + abs(tl[1] - tr[1]) + abs(bl[0] - br[0]) + abs(bl[1] - br[1])) / 4.0


def is_vortex(agents: Sequence[SwarmAgent], width: float, height: float, thresholds: EmergenceThresholds) -> bool:
    if not agents:
        return False
    return rotation_coherence(agents, width, height) > thresholds.vortex_rotation


def is_wave(agents: Sequence[SwarmAgent], width: float, height: float, thresholds: EmergenceThresholds) -> bool:
    if len(agents) < thresholds.wave_min_agents:
        return False
    return quadrant_velocity_difference(agents, width, height) < thresholds.wave_velocity_difference


def detect_patterns(
    agents: Sequence[SwarmAgent],
    stats: NeighborhoodStats,
    clustering: float,
    width: float,
    height: float,
    thresholds: EmergenceThresholds,
) -> FrozenSet[EmergencePattern]:
    patterns: Set[EmergencePattern] = set()
    if (
        stats.average_alignment > thresholds.flocking_alignment
        and stats.average_cohesion > thresholds.flocking_cohesion
    ):
        patterns.add(EmergencePattern.FLOCKING)
    if clustering > thresholds.clustering:
        patterns.add(EmergencePattern.CLUSTERING)
    if is_vortex(agents, width, height, thresholds):
        patterns.add(EmergencePattern.VORTEX)
    if is_wave(agents, width, height, thresholds):
        patterns.add(EmergencePattern.WAVE)
    return frozenset(patterns)


def self_organization_level(generation: int, clustering: float, thresholds: EmergenceThresholds) -> float:
    maturity_span = max(1, thresholds.maturity_generations)
    maturity = min(1.0, generation / maturity_span)
    # Every agent steers itself, so autonomy is constant.
    autonomy = 1.0
    return (maturity + autonomy + clustering) / 3.0
