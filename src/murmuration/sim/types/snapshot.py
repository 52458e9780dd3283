from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from .metrics import SwarmMetrics


@dataclass(slots=True)
class Snapshot:
    generation: int
    metrics: SwarmMetrics
    agents: List[Dict[str, Any]]
    world: "SnapshotWorld"
    metadata: "SnapshotMetadata"


@dataclass(slots=True)
class SnapshotWorld:
    width: float
    height: float


@dataclass(slots=True)
class SnapshotMetadata:
    seed: int
    config_version: str
    neighbor_index: str
    patterns: List[str]
    self_organization_level: float
