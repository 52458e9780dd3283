from __future__ import annotations

from .sim.core.agent import AgentRole, SwarmAgent
from .sim.core.config import AgentDefaults, EmergenceThresholds, ForceWeights, SwarmConfig, load_config
from .sim.core.engine import Bounds, SwarmEngine
from .sim.core.rng import DeterministicRng
from .sim.types.emergence import EmergencePattern, EmergenceReport
from .sim.types.metrics import SwarmMetrics

__all__ = [
    "AgentDefaults",
    "AgentRole",
    "Bounds",
    "DeterministicRng",
    "EmergencePattern",
    "EmergenceReport",
    "EmergenceThresholds",
    "ForceWeights",
    "SwarmAgent",
    "SwarmConfig",
    "SwarmEngine",
    "SwarmMetrics",
    "load_config",
]
