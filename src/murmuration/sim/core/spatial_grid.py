from __future__ import annotations

import math
from typing import TYPE_CHECKING, Dict, Iterable, List, Protocol, Tuple

from pygame.math import Vector2

if TYPE_CHECKING:
    from .agent import SwarmAgent


class NeighborIndex(Protocol):
    def rebuild(self, agents: Iterable["SwarmAgent"]) -> None: ...

    def collect_neighbors(
        self,
        position: Vector2,
        radius: float,
        out_agents: List["SwarmAgent"],
        out_offsets: List[Vector2],
        exclude_id: int | None = None,
        out_dist_sq: List[float] | None = None,
    ) -> None: ...


def _append_hit(
    agent: "SwarmAgent",
    offset_x: float,
    offset_y: float,
    dist_sq: float,
    count: int,
    out_agents: List["SwarmAgent"],
    out_offsets: List[Vector2],
    out_dist_sq: List[float] | None,
) -> None:
    out_agents.append(agent)
    if count < len(out_offsets):
        out_offsets[count].update(offset_x, offset_y)
    else:
        out_offsets.append(Vector2(offset_x, offset_y))
    if out_dist_sq is not None:
        if count < len(out_dist_sq):
            out_dist_sq[count] = dist_sq
        else:
            out_dist_sq.append(dist_sq)


def _trim(count: int, out_offsets: List[Vector2], out_dist_sq: List[float] | None) -> None:
    del out_offsets[count:]
    if out_dist_sq is not None:
        del out_dist_sq[count:]


class PairwiseScan:
    """Naive O(n) scan per query over the whole snapshot."""

    def __init__(self) -> None:
        self._agents: List["SwarmAgent"] = []

    def rebuild(self, agents: Iterable["SwarmAgent"]) -> None:
        self._agents = list(agents)

    def collect_neighbors(
        self,
        position: Vector2,
        radius: float,
        out_agents: List["SwarmAgent"],
        out_offsets: List[Vector2],
        exclude_id: int | None = None,
        out_dist_sq: List[float] | None = None,
    ) -> None:
        """
        Fill the provided buffers with every agent strictly closer than `radius`,
        together with its offset from `position` and, optionally, the squared distance.

        Buffers are reused across calls; offsets beyond the hit count are trimmed.
        """

        out_agents.clear()
        count = 0
        radius_sq = radius * radius
        pos_x = position.x
        pos_y = position.y
        for agent in self._agents:
            if exclude_id is not None and agent.id == exclude_id:
                continue
            pos = agent.position
            offset_x = pos.x - pos_x
            offset_y = pos.y - pos_y
            dist_sq = offset_x * offset_x + offset_y * offset_y
            if dist_sq < radius_sq:
                _append_hit(agent, offset_x, offset_y, dist_sq, count, out_agents, out_offsets, out_dist_sq)
                count += 1
        _trim(count, out_offsets, out_dist_sq)


class SpatialGrid:
    """Uniform grid bucketing; returns the same neighbor sets as `PairwiseScan`."""

    def __init__(self, cell_size: float) -> None:
        if cell_size <= 0:
            raise ValueError(f"cell_size must be positive, got {cell_size}")
        self._cell_size = cell_size
        self._cells: Dict[Tuple[int, int], List["SwarmAgent"]] = {}
        self._active_keys: List[Tuple[int, int]] = []
        self._offset_cache: Dict[float, List[Tuple[int, int]]] = {}

    def build_neighbor_cell_offsets(self, radius: float) -> List[Tuple[int, int]]:
        cached = self._offset_cache.get(radius)
        if cached is not None:
            return cached
        cell_range = int(math.ceil(radius / self._cell_size))
        offsets = [(dx, dy) for dx in range(-cell_range, cell_range + 1) for dy in range(-cell_range, cell_range + 1)]
        self._offset_cache[radius] = offsets
        return offsets

    def clear(self) -> None:
        for key in self._active_keys:
            bucket = self._cells.get(key)
            if bucket:
                bucket.clear()
        self._active_keys.clear()

    def insert(self, agent: "SwarmAgent") -> None:
        key = self._cell_key(agent.position)
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = []
            self._cells[key] = bucket
            self._active_keys.append(key)
        elif not bucket:
            # Bucket exists but was cleared by the last rebuild; mark it active again.
            self._active_keys.append(key)
        bucket.append(agent)

    def rebuild(self, agents: Iterable["SwarmAgent"]) -> None:
        self.clear()
        for agent in agents:
            self.insert(agent)

    def collect_neighbors(
        self,
        position: Vector2,
        radius: float,
        out_agents: List["SwarmAgent"],
        out_offsets: List[Vector2],
        exclude_id: int | None = None,
        out_dist_sq: List[float] | None = None,
    ) -> None:
        out_agents.clear()
        count = 0
        base_key = self._cell_key(position)
        radius_sq = radius * radius
        pos_x = position.x
        pos_y = position.y
        cells = self._cells

        for dx, dy in self.build_neighbor_cell_offsets(radius):
            bucket = cells.get((base_key[0] + dx, base_key[1] + dy))
            if not bucket:
                continue
            for agent in bucket:
                if exclude_id is not None and agent.id == exclude_id:
                    continue
                pos = agent.position
                offset_x = pos.x - pos_x
                offset_y = pos.y - pos_y
                dist_sq = offset_x * offset_x + offset_y * offset_y
                if dist_sq < radius_sq:
                    _append_hit(agent, offset_x, offset_y, dist_sq, count, out_agents, out_offsets, out_dist_sq)
                    count += 1
        _trim(count, out_offsets, out_dist_sq)

    def _cell_key(self, position: Vector2) -> Tuple[int, int]:
        return (int(position.x // self._cell_size), int(position.y // self._cell_size))


def create_neighbor_index(kind: str, cell_size: float) -> NeighborIndex:
    name = kind.lower().strip()
    if name == "pairwise":
        return PairwiseScan()
    if name == "grid":
        return SpatialGrid(cell_size)
    raise ValueError(f"Unknown neighbor index: {kind}")
