from __future__ import annotations

import pytest
from pygame.math import Vector2

from murmuration.sim.core.agent import SwarmAgent
from murmuration.sim.core.rng import DeterministicRng
from murmuration.sim.core.spatial_grid import PairwiseScan, SpatialGrid, create_neighbor_index


def _agent(agent_id: int, x: float, y: float) -> SwarmAgent:
    return SwarmAgent(id=agent_id, position=Vector2(x, y), velocity=Vector2())


def _random_agents(count: int, seed: int, size: float = 300.0) -> list[SwarmAgent]:
    rng = DeterministicRng(seed)
    return [_agent(i, rng.next_below(size), rng.next_below(size)) for i in range(count)]


def test_grid_matches_pairwise_scan():
    agents = _random_agents(120, seed=3)
    pairwise = PairwiseScan()
    grid = SpatialGrid(cell_size=20.0)
    pairwise.rebuild(agents)
    grid.rebuild(agents)

    for radius in (10.0, 25.0, 50.0):
        for agent in agents:
            pair_agents: list[SwarmAgent] = []
            pair_offsets: list[Vector2] = []
            grid_agents: list[SwarmAgent] = []
            grid_offsets: list[Vector2] = []
            pairwise.collect_neighbors(agent.position, radius, pair_agents, pair_offsets, exclude_id=agent.id)
            grid.collect_neighbors(agent.position, radius, grid_agents, grid_offsets, exclude_id=agent.id)
            assert sorted(a.id for a in pair_agents) == sorted(a.id for a in grid_agents)


def test_neighbors_are_strictly_inside_radius_and_exclude_self():
    agents = [
        _agent(0, 0.0, 0.0),
        _agent(1, 3.0, 4.0),
        _agent(2, 2.0, 0.0),
        _agent(3, 0.0, 0.0),
    ]
    for index in (PairwiseScan(), SpatialGrid(cell_size=2.5)):
        index.rebuild(agents)
        out_agents: list[SwarmAgent] = []
        out_offsets: list[Vector2] = []
        out_dist_sq: list[float] = []

        index.collect_neighbors(Vector2(0.0, 0.0), 5.0, out_agents, out_offsets, exclude_id=0, out_dist_sq=out_dist_sq)

        # Agent 1 sits exactly on the radius; agent 3 is coincident and still counts.
        assert sorted(a.id for a in out_agents) == [2, 3]
        assert len(out_offsets) == len(out_agents) == len(out_dist_sq)
        for agent, offset, dist_sq in zip(out_agents, out_offsets, out_dist_sq):
            assert agent.position == offset
            assert dist_sq == pytest.approx(offset.length_squared())


def test_reused_buffers_are_trimmed():
    index = PairwiseScan()
    index.rebuild([_agent(0, 0.0, 0.0), _agent(1, 1.0, 0.0)])

    out_agents: list[SwarmAgent] = []
    out_offsets: list[Vector2] = [Vector2(5, 5), Vector2(6, 6), Vector2(7, 7)]
    out_dist_sq: list[float] = [42.0, 43.0, 44.0]

    index.collect_neighbors(Vector2(0.5, 0.0), 2.0, out_agents, out_offsets, out_dist_sq=out_dist_sq)
    assert len(out_agents) == 2
    assert len(out_offsets) == 2
    assert out_dist_sq == [0.25, 0.25]

    index.collect_neighbors(Vector2(500.0, 500.0), 2.0, out_agents, out_offsets, out_dist_sq=out_dist_sq)
    assert out_agents == []
    assert out_offsets == []
    assert out_dist_sq == []


def test_grid_rebuild_drops_stale_positions():
    agent = _agent(0, 1.0, 1.0)
    grid = SpatialGrid(cell_size=5.0)
    grid.rebuild([agent])

    agent.position.update(80.0, 80.0)
    grid.rebuild([agent])

    found: list[SwarmAgent] = []
    offsets: list[Vector2] = []
    grid.collect_neighbors(Vector2(0.0, 0.0), 4.0, found, offsets)
    assert found == []
    grid.collect_neighbors(Vector2(79.0, 79.0), 4.0, found, offsets)
    assert [a.id for a in found] == [0]


def test_create_neighbor_index_by_name():
    assert isinstance(create_neighbor_index("pairwise", 10.0), PairwiseScan)
    assert isinstance(create_neighbor_index(" Grid ", 10.0), SpatialGrid)
    with pytest.raises(ValueError):
        create_neighbor_index("quadtree", 10.0)
    with pytest.raises(ValueError):
        SpatialGrid(cell_size=0.0)
