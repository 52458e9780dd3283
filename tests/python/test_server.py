import asyncio
import json

import pytest

from murmuration.app.server import SimulationController
from murmuration.sim.core.config import AppConfig


def _controller(agents: int = 5) -> SimulationController:
    return SimulationController(AppConfig(initial_agents=agents))


def test_controller_populates_initial_agents():
    controller = _controller()

    assert controller.engine.agent_count == 5
    assert controller.engine.generation == 0
    assert controller.engine.config.emergence_history_limit == 1000


def test_snapshots_queue_until_acknowledged():
    controller = _controller()

    async def scenario():
        await controller._broadcast_snapshot()
        await controller.step()
        await controller._broadcast_snapshot()
        queued = [item.generation for item in controller._snapshot_queue]
        await controller.acknowledge(0)
        remaining = [item.generation for item in controller._snapshot_queue]
        return queued, remaining

    queued, remaining = asyncio.run(scenario())

    assert queued == [0, 1]
    assert remaining == [1]
    payload = json.loads(controller._snapshot_queue[0].payload)
    assert payload["type"] == "snapshot"
    assert payload["generation"] == 1
    assert len(payload["payload"]["agents"]) == 5
    assert set(payload["payload"]["world"]) == {"width", "height"}


def test_reset_repopulates_swarm():
    controller = _controller(agents=4)

    async def scenario():
        await controller.step()
        await controller.step()
        await controller.add_agent({})
        await controller.reset()

    asyncio.run(scenario())

    assert controller.engine.generation == 0
    assert controller.engine.agent_count == 4
    assert [item.generation for item in controller._snapshot_queue] == [0]


def test_add_agent_returns_payload():
    controller = _controller(agents=0)

    created = asyncio.run(controller.add_agent({"position": {"x": 10.0, "y": 20.0}, "velocity": [1.0, 0.0]}))

    assert created["id"] == 0
    assert (created["x"], created["y"]) == (10.0, 20.0)
    assert created["role"] == "follower"


def test_add_agent_rejects_bad_payload():
    controller = _controller(agents=0)

    with pytest.raises(ValueError):
        asyncio.run(controller.add_agent({"max_speed": -1}))
    assert controller.engine.agent_count == 0


def test_add_agent_rejects_non_numeric_fitness():
    controller = _controller(agents=0)

    with pytest.raises(ValueError):
        asyncio.run(controller.add_agent({"fitness": None}))
    assert controller.engine.agent_count == 0


def test_snapshot_queue_is_bounded_without_clients():
    controller = SimulationController(AppConfig(initial_agents=2, snapshot_queue_limit=3))

    async def scenario():
        for _ in range(10):
            await controller.step()
            await controller._broadcast_snapshot()

    asyncio.run(scenario())

    assert [item.generation for item in controller._snapshot_queue] == [8, 9, 10]


def test_controller_leaves_caller_config_untouched():
    config = AppConfig(initial_agents=1, emergence_history_limit=7)

    controller = SimulationController(config)

    assert config.swarm.emergence_history_limit is None
    assert controller.config.swarm.emergence_history_limit == 7
    assert controller.engine.config.emergence_history_limit == 7
