from __future__ import annotations

from typing import List

from pygame.math import Vector2

from ..core.agent import SwarmAgent
from ..core.config import ForceWeights
from ..utils.math2d import clamp_length_xy, set_magnitude_xy

_COINCIDENT_DIST_SQ = 1e-18


def steer_towards(desired_x: float, desired_y: float, agent: SwarmAgent) -> Vector2:
    """Reynolds steering: rescale `desired` to max speed, subtract velocity, clamp to max force.

    A zero-length desired vector yields no steering at all.
    """
    if desired_x * desired_x + desired_y * desired_y < _COINCIDENT_DIST_SQ:
        return Vector2()
    target_x, target_y = set_magnitude_xy(desired_x, desired_y, agent.max_speed)
    steer_x, steer_y = clamp_length_xy(
        target_x - agent.velocity.x,
        target_y - agent.velocity.y,
        agent.max_force,
    )
    return Vector2(steer_x, steer_y)


def separation(
    agent: SwarmAgent,
    neighbor_offsets: List[Vector2],
    neighbor_dist_sq: List[float],
) -> Vector2:
    radius_sq = agent.separation_radius * agent.separation_radius
    accum_x = 0.0
    accum_y = 0.0
    count = 0
    for offset, dist_sq in zip(neighbor_offsets, neighbor_dist_sq):
        if dist_sq <= _COINCIDENT_DIST_SQ or dist_sq >= radius_sq:
            continue
        # Unit vector away from the neighbor divided by distance: -offset / d^2.
        inv_dist_sq = 1.0 / dist_sq
        accum_x -= offset.x * inv_dist_sq
        accum_y -= offset.y * inv_dist_sq
        count += 1
    if count == 0:
        return Vector2()
    inv = 1.0 / count
    return steer_towards(accum_x * inv, accum_y * inv, agent)


def alignment(
    agent: SwarmAgent,
    neighbors: List[SwarmAgent],
    neighbor_dist_sq: List[float],
) -> Vector2:
    radius_sq = agent.perception_radius * agent.perception_radius
    sum_x = 0.0
    sum_y = 0.0
    count = 0
    for other, dist_sq in zip(neighbors, neighbor_dist_sq):
        if dist_sq <= _COINCIDENT_DIST_SQ or dist_sq >= radius_sq:
            continue
        sum_x += other.velocity.x
        sum_y += other.velocity.y
        count += 1
    if count == 0:
        return Vector2()
    inv = 1.0 / count
    return steer_towards(sum_x * inv, sum_y * inv, agent)


def cohesion(
    agent: SwarmAgent,
    neighbor_offsets: List[Vector2],
    neighbor_dist_sq: List[float],
) -> Vector2:
    radius_sq = agent.perception_radius * agent.perception_radius
    sum_x = 0.0
    sum_y = 0.0
    count = 0
    for offset, dist_sq in zip(neighbor_offsets, neighbor_dist_sq):
        if dist_sq <= _COINCIDENT_DIST_SQ or dist_sq >= radius_sq:
            continue
        sum_x += offset.x
        sum_y += offset.y
        count += 1
    if count == 0:
        return Vector2()
    # Mean offset is the vector from the agent to the neighbors' centroid.
    inv = 1.0 / count
    return steer_towards(sum_x * inv, sum_y * inv, agent)


def compute_acceleration(
    agent: SwarmAgent,
    neighbors: List[SwarmAgent],
    neighbor_offsets: List[Vector2],
    neighbor_dist_sq: List[float],
    weights: ForceWeights,
) -> Vector2:
    acceleration = Vector2()
    if not neighbors:
        return acceleration
    acceleration += separation(agent, neighbor_offsets, neighbor_dist_sq) * weights.separation
    acceleration += alignment(agent, neighbors, neighbor_dist_sq) * weights.alignment
    acceleration += cohesion(agent, neighbor_offsets, neighbor_dist_sq) * weights.cohesion
    return acceleration


def query_radius(agent: SwarmAgent) -> float:
    return max(agent.perception_radius, agent.separation_radius)
