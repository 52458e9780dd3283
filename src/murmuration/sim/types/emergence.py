from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet


class EmergencePattern(str, Enum):
    FLOCKING = "flocking"
    CLUSTERING = "clustering"
    VORTEX = "vortex"
    WAVE = "wave"


@dataclass(frozen=True, slots=True)
class EmergenceReport:
    has_emergence: bool
    patterns_detected: FrozenSet[EmergencePattern] = field(default_factory=frozenset)
    collective_intelligence: float = 0.0
    self_organization_level: float = 0.0

    def pattern_names(self) -> list[str]:
        """Sorted pattern values, stable for logs and JSON payloads."""
        return sorted(pattern.value for pattern in self.patterns_detected)
