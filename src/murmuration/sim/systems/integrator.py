from __future__ import annotations

import math
from typing import List, Sequence

from pygame.math import Vector2

from ..core.agent import SwarmAgent
from ..core.config import ForceWeights
from ..core.spatial_grid import NeighborIndex
from ..utils.math2d import wrap_coordinate
from . import steering


def compute_accelerations(
    agents: Sequence[SwarmAgent],
    index: NeighborIndex,
    weights: ForceWeights,
) -> List[Vector2]:
    """Evaluate every agent's steering against the current, unmodified snapshot."""
    neighbor_agents: List[SwarmAgent] = []
    neighbor_offsets: List[Vector2] = []
    neighbor_dist_sq: List[float] = []
    index.rebuild(agents)
    accelerations: List[Vector2] = []
    for agent in agents:
        index.collect_neighbors(
            agent.position,
            steering.query_radius(agent),
            neighbor_agents,
            neighbor_offsets,
            exclude_id=agent.id,
            out_dist_sq=neighbor_dist_sq,
        )
        accelerations.append(
            steering.compute_acceleration(agent, neighbor_agents, neighbor_offsets, neighbor_dist_sq, weights)
        )
    return accelerations


def integrate(agent: SwarmAgent, acceleration: Vector2, width: float, height: float) -> None:
    agent.acceleration.update(acceleration.x, acceleration.y)
    vel_x = agent.velocity.x + acceleration.x
    vel_y = agent.velocity.y + acceleration.y
    speed_sq = vel_x * vel_x + vel_y * vel_y
    if speed_sq > agent.max_speed * agent.max_speed:
        scale = agent.max_speed / math.sqrt(speed_sq)
        vel_x *= scale
        vel_y *= scale
    agent.velocity.update(vel_x, vel_y)
    agent.position.update(
        wrap_coordinate(agent.position.x + vel_x, width),
        wrap_coordinate(agent.position.y + vel_y, height),
    )


def step(
    agents: Sequence[SwarmAgent],
    index: NeighborIndex,
    weights: ForceWeights,
    width: float,
    height: float,
) -> None:
    accelerations = compute_accelerations(agents, index, weights)
    for agent, acceleration in zip(agents, accelerations):
        integrate(agent, acceleration, width, height)
