from __future__ import annotations

import math
from typing import List, Sequence, Set

from pygame.math import Vector2

from ..core.agent import SwarmAgent
from ..core.spatial_grid import NeighborIndex
from ..types.emergence import EmergenceReport
from ..types.metrics import NeighborhoodStats, SwarmMetrics
from ..utils.math2d import clamp_value, distance_xy
from .steering import query_radius

# Callers must rebuild `index` from `agents` before calling the functions below.


def average_speed(agents: Sequence[SwarmAgent]) -> float:
    if not agents:
        return 0.0
    return sum(agent.velocity.length() for agent in agents) / len(agents)


def neighborhood_stats(
    agents: Sequence[SwarmAgent],
    index: NeighborIndex,
    width: float,
    height: float,
) -> NeighborhoodStats:
    """Cohesion, alignment and separation scores from a single neighbor scan.

    Agents without perception neighbors are left out of the cohesion and alignment
    averages instead of contributing zero. Coincident agents count as neighbors here.
    """
    total = len(agents)
    if total == 0:
        return NeighborhoodStats(average_cohesion=0.0, average_alignment=0.0, separation_score=0.0)

    max_distance = math.hypot(width, height)
    neighbor_agents: List[SwarmAgent] = []
    neighbor_offsets: List[Vector2] = []
    neighbor_dist_sq: List[float] = []

    cohesion_sum = 0.0
    alignment_sum = 0.0
    perceiving = 0
    separation_sum = 0.0

    for agent in agents:
        index.collect_neighbors(
            agent.position,
            query_radius(agent),
            neighbor_agents,
            neighbor_offsets,
            exclude_id=agent.id,
            out_dist_sq=neighbor_dist_sq,
        )
        perception_sq = agent.perception_radius * agent.perception_radius
        separation_sq = agent.separation_radius * agent.separation_radius
        offset_x = 0.0
        offset_y = 0.0
        vel_x = 0.0
        vel_y = 0.0
        count = 0
        crowded = 0
        for other, offset, dist_sq in zip(neighbor_agents, neighbor_offsets, neighbor_dist_sq):
            if dist_sq < separation_sq:
                crowded += 1
            if dist_sq >= perception_sq:
                continue
            offset_x += offset.x
            offset_y += offset.y
            vel_x += other.velocity.x
            vel_y += other.velocity.y
            count += 1

        separation_sum += 1.0 - crowded / total
        if count == 0:
            continue
        perceiving += 1
        inv = 1.0 / count
        centroid_distance = math.hypot(offset_x * inv, offset_y * inv)
        cohesion_sum += 1.0 - centroid_distance / max_distance
        alignment_sum += _cosine_similarity(agent.velocity.x, agent.velocity.y, vel_x * inv, vel_y * inv)

    return NeighborhoodStats(
        average_cohesion=0.0 if perceiving == 0 else cohesion_sum / perceiving,
        average_alignment=0.0 if perceiving == 0 else alignment_sum / perceiving,
        separation_score=separation_sum / total,
    )


def _cosine_similarity(ax: float, ay: float, bx: float, by: float) -> float:
    mag_a = math.hypot(ax, ay)
    mag_b = math.hypot(bx, by)
    if mag_a <= 0.0 or mag_b <= 0.0:
        return 0.0
    return max(0.0, (ax * bx + ay * by) / (mag_a * mag_b))


def clustering_coefficient(
    agents: Sequence[SwarmAgent],
    index: NeighborIndex,
    min_cluster_size: int,
) -> float:
    """Share of agents that belong to a connected component larger than `min_cluster_size`.

    Components are grown by flood fill; every hop uses the perception radius of the agent
    that seeded the component.
    """
    if not agents:
        return 0.0
    visited: Set[int] = set()
    neighbor_agents: List[SwarmAgent] = []
    neighbor_offsets: List[Vector2] = []
    clustered = 0
    for seed in agents:
        if seed.id in visited:
            continue
        radius = seed.perception_radius
        size = 0
        pending = [seed]
        while pending:
            current = pending.pop()
            if current.id in visited:
                continue
            visited.add(current.id)
            size += 1
            index.collect_neighbors(
                current.position, radius, neighbor_agents, neighbor_offsets, exclude_id=current.id
            )
            pending.extend(other for other in neighbor_agents if other.id not in visited)
        if size > min_cluster_size:
            clustered += size
    return clustered / len(agents)


def fitness(agent: SwarmAgent, width: float, height: float) -> float:
    """Mean of closeness to the arena center and speed relative to `max_speed`."""
    to_center = distance_xy(agent.position.x, agent.position.y, width * 0.5, height * 0.5)
    center_score = 1.0 - to_center / max(width, height)
    speed_score = agent.velocity.length() / agent.max_speed
    return (center_score + speed_score) * 0.5


def collective_intelligence(
    agents: Sequence[SwarmAgent],
    stats: NeighborhoodStats,
    width: float,
    height: float,
    cap: float,
) -> float:
    if not agents:
        return 0.0
    best_individual = max(fitness(agent, width, height) for agent in agents)
    if best_individual <= 0.0:
        return 0.0
    group_performance = (stats.average_cohesion + stats.average_alignment) * 0.5
    return clamp_value(group_performance / best_individual, 0.0, cap)


def create_metrics(
    agents: Sequence[SwarmAgent],
    stats: NeighborhoodStats,
    clustering: float,
    report: EmergenceReport,
) -> SwarmMetrics:
    return SwarmMetrics(
        agent_count=len(agents),
        average_speed=average_speed(agents),
        average_cohesion=stats.average_cohesion,
        average_alignment=stats.average_alignment,
        separation_score=stats.separation_score,
        clustering_coefficient=clustering,
        emergence_detected=report.has_emergence,
        collective_intelligence_index=report.collective_intelligence,
    )
