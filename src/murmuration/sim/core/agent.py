from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pygame.math import Vector2


class AgentRole(str, Enum):
    """Role tag carried by every agent.

    No steering rule reads it yet; it is reserved for role-dependent behavior.
    """

    LEADER = "leader"
    FOLLOWER = "follower"
    SCOUT = "scout"


@dataclass(slots=True)
class SwarmAgent:
    id: int
    position: Vector2
    velocity: Vector2
    acceleration: Vector2 = field(default_factory=Vector2)
    max_force: float = 0.1
    max_speed: float = 4.0
    perception_radius: float = 50.0
    separation_radius: float = 25.0
    role: AgentRole = AgentRole.FOLLOWER
    fitness: float = 0.0

    def copy(self) -> "SwarmAgent":
        return SwarmAgent(
            id=self.id,
            position=Vector2(self.position),
            velocity=Vector2(self.velocity),
            acceleration=Vector2(self.acceleration),
            max_force=self.max_force,
            max_speed=self.max_speed,
            perception_radius=self.perception_radius,
            separation_radius=self.separation_radius,
            role=self.role,
            fitness=self.fitness,
        )
