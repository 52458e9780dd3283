from __future__ import annotations

import math

import pytest
from pygame.math import Vector2
from pytest import approx

from murmuration.sim.core.agent import SwarmAgent
from murmuration.sim.core.config import SwarmConfig
from murmuration.sim.core.engine import SwarmEngine
from murmuration.sim.core.spatial_grid import PairwiseScan
from murmuration.sim.systems import metrics as metrics_system
from murmuration.sim.types.metrics import NeighborhoodStats

DIAGONAL = math.hypot(1000.0, 1000.0)


def _engine(placements, **config_values) -> SwarmEngine:
    engine = SwarmEngine(SwarmConfig(**config_values))
    for position, velocity in placements:
        engine.add_agent({"position": position, "velocity": velocity})
    return engine


def test_empty_swarm_metrics_are_neutral():
    metrics = SwarmEngine().get_swarm_metrics()

    assert metrics.agent_count == 0
    assert metrics.average_speed == 0.0
    assert metrics.average_cohesion == 0.0
    assert metrics.average_alignment == 0.0
    assert metrics.separation_score == 0.0
    assert metrics.clustering_coefficient == 0.0
    assert metrics.collective_intelligence_index == 0.0
    assert metrics.emergence_detected is False


def test_average_speed():
    engine = _engine([((10.0, 10.0), (3.0, 4.0)), ((900.0, 900.0), (0.0, 0.0))])
    assert engine.get_swarm_metrics().average_speed == approx(2.5)


def test_cohesion_and_alignment_skip_isolated_agents():
    engine = _engine(
        [
            ((100.0, 100.0), (1.0, 0.0)),
            ((110.0, 100.0), (2.0, 0.0)),
            ((800.0, 800.0), (0.0, 1.0)),
        ]
    )

    metrics = engine.get_swarm_metrics()

    assert metrics.average_cohesion == approx(1.0 - 10.0 / DIAGONAL)
    assert metrics.average_alignment == approx(1.0)


def test_opposed_headings_do_not_count_as_alignment():
    engine = _engine([((100.0, 100.0), (1.0, 0.0)), ((110.0, 100.0), (-1.0, 0.0))])
    assert engine.get_swarm_metrics().average_alignment == approx(0.0)


def test_separation_score_penalises_crowding():
    engine = _engine(
        [
            ((100.0, 100.0), (1.0, 0.0)),
            ((110.0, 100.0), (1.0, 0.0)),
            ((800.0, 800.0), (1.0, 0.0)),
        ]
    )
    assert engine.get_swarm_metrics().separation_score == approx(7.0 / 9.0)


def test_clustering_follows_chains_of_neighbors():
    chain = [((100.0 + 40.0 * i, 100.0), (0.0, 0.0)) for i in range(5)]
    loners = [((700.0, 700.0), (0.0, 0.0)), ((900.0, 200.0), (0.0, 0.0))]

    assert _engine(chain + loners).get_swarm_metrics().clustering_coefficient == approx(5.0 / 7.0)
    assert _engine(chain[:4]).get_swarm_metrics().clustering_coefficient == approx(1.0)
    assert _engine(chain[:3]).get_swarm_metrics().clustering_coefficient == 0.0


def test_grid_and_pairwise_metrics_agree():
    placements = [
        (((i * 71) % 400 + 300.0, (i * 29) % 400 + 300.0), ((i % 3) - 1.0, (i % 4) - 1.5))
        for i in range(60)
    ]
    pairwise = _engine(placements).get_swarm_metrics()
    grid = _engine(placements, neighbor_index="grid", cell_size=30.0).get_swarm_metrics()

    assert grid.average_cohesion == approx(pairwise.average_cohesion)
    assert grid.average_alignment == approx(pairwise.average_alignment)
    assert grid.separation_score == approx(pairwise.separation_score)
    assert grid.clustering_coefficient == approx(pairwise.clustering_coefficient)


def test_fitness_rewards_centre_and_speed():
    centre = SwarmAgent(id=0, position=Vector2(500.0, 500.0), velocity=Vector2(4.0, 0.0))
    corner = SwarmAgent(id=1, position=Vector2(0.0, 0.0), velocity=Vector2(0.0, 0.0))

    assert metrics_system.fitness(centre, 1000.0, 1000.0) == approx(1.0)
    assert metrics_system.fitness(corner, 1000.0, 1000.0) == approx((1.0 - DIAGONAL / 2.0 / 1000.0) / 2.0)


def test_collective_intelligence_is_capped():
    # Slow agents in a corner score poorly alone but align perfectly as a group.
    engine = _engine([((1.0, 1.0), (0.01, 0.0)), ((11.0, 1.0), (0.01, 0.0))])

    assert engine.calculate_collective_intelligence() == 2.0
    assert engine.detect_emergence().collective_intelligence == 2.0


@pytest.mark.parametrize("count", [0, 1, 2, 7, 40])
def test_collective_intelligence_stays_in_range(count):
    engine = SwarmEngine(SwarmConfig(width=300, height=200, seed=count))
    for _ in range(count):
        engine.add_agent()
    for _ in range(3):
        engine.update_swarm()
        value = engine.calculate_collective_intelligence()
        assert 0.0 <= value <= 2.0


def test_collective_intelligence_guard_when_best_is_not_positive():
    # Motionless and far outside a tiny arena, so the best fitness is negative.
    agent = SwarmAgent(id=0, position=Vector2(-5000.0, 0.0), velocity=Vector2(0.0, 0.0))
    stats = NeighborhoodStats(average_cohesion=1.0, average_alignment=1.0, separation_score=1.0)

    assert metrics_system.fitness(agent, 10.0, 10.0) < 0.0
    assert metrics_system.collective_intelligence([agent], stats, 10.0, 10.0, 2.0) == 0.0
    assert metrics_system.collective_intelligence([], stats, 10.0, 10.0, 2.0) == 0.0


def test_single_agent_metrics_degrade_gracefully():
    engine = _engine([((500.0, 500.0), (2.0, 0.0))])

    metrics = engine.get_swarm_metrics()

    assert metrics.agent_count == 1
    assert metrics.average_cohesion == 0.0
    assert metrics.average_alignment == 0.0
    assert metrics.separation_score == 1.0
    assert metrics.clustering_coefficient == 0.0
    assert metrics.collective_intelligence_index == 0.0


def test_neighborhood_stats_on_raw_agents():
    agents = [
        SwarmAgent(id=0, position=Vector2(0.0, 0.0), velocity=Vector2(1.0, 1.0)),
        SwarmAgent(id=1, position=Vector2(0.0, 0.0), velocity=Vector2(1.0, 1.0)),
    ]
    index = PairwiseScan()
    index.rebuild(agents)

    stats = metrics_system.neighborhood_stats(agents, index, 100.0, 100.0)

    # Coincident agents still see each other for metrics.
    assert stats.average_cohesion == approx(1.0)
    assert stats.average_alignment == approx(1.0)
    assert stats.separation_score == approx(0.5)
