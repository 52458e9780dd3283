from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SwarmMetrics:
    agent_count: int
    average_speed: float
    average_cohesion: float
    average_alignment: float
    separation_score: float
    clustering_coefficient: float
    emergence_detected: bool
    collective_intelligence_index: float


@dataclass(frozen=True, slots=True)
class NeighborhoodStats:
    """Per-population aggregates that share one neighbor scan."""

    average_cohesion: float
    average_alignment: float
    separation_score: float
