from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from ..sim.core.config import AppConfig
from ..sim.core.engine import SwarmEngine
from ..sim.types.emergence import EmergenceReport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueuedSnapshot:
    generation: int
    payload: str


def _report_payload(report: EmergenceReport) -> Dict[str, Any]:
    return {
        "has_emergence": report.has_emergence,
        "patterns_detected": report.pattern_names(),
        "collective_intelligence": report.collective_intelligence,
        "self_organization_level": report.self_organization_level,
    }


class SimulationController:
    def __init__(self, config: AppConfig):
        if config.swarm.emergence_history_limit is None:
            swarm = replace(config.swarm, emergence_history_limit=config.emergence_history_limit)
            config = replace(config, swarm=swarm)
        self.config = config
        self.engine = SwarmEngine(config.swarm)
        self.broadcast_interval = max(1, config.broadcast_interval)
        self.running = False
        self.speed_multiplier = 1.0
        self.clients: Set[WebSocket] = set()
        self._client_last_sent: Dict[WebSocket, int] = {}
        self._snapshot_queue: deque[QueuedSnapshot] = deque(maxlen=max(1, config.snapshot_queue_limit))
        self._lock = asyncio.Lock()
        self._queue_lock = asyncio.Lock()
        self._broadcast_task: asyncio.Task | None = None
        self._populate()

    def _populate(self) -> None:
        for _ in range(self.config.initial_agents):
            self.engine.add_agent()

    async def start(self) -> None:
        if self._broadcast_task is None:
            self._broadcast_task = asyncio.create_task(self._loop())
        self.running = True
        logger.info("Simulation started with %d agents", self.engine.agent_count)

    async def stop(self) -> None:
        self.running = False

    async def reset(self) -> None:
        async with self._lock:
            self.engine.clear_agents()
            self._populate()
        async with self._queue_lock:
            self._snapshot_queue.clear()
        for client in self._client_last_sent:
            self._client_last_sent[client] = -1
        logger.info("Simulation reset")
        await self._broadcast_snapshot()

    async def add_agent(self, overrides: Dict[str, Any]) -> Dict[str, Any]:
        async with self._lock:
            agent = self.engine.add_agent(overrides)
        return {
            "id": agent.id,
            "x": agent.position.x,
            "y": agent.position.y,
            "vx": agent.velocity.x,
            "vy": agent.velocity.y,
            "role": agent.role.value,
        }

    async def step(self) -> None:
        async with self._lock:
            self.engine.update_swarm()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.tick_interval / self.speed_multiplier)
            if not self.running:
                continue
            await self.step()
            if self.engine.generation % self.broadcast_interval == 0:
                await self._broadcast_snapshot()

    async def acknowledge(self, generation: int) -> None:
        async with self._queue_lock:
            while self._snapshot_queue and self._snapshot_queue[0].generation <= generation:
                self._snapshot_queue.popleft()

    async def _serialize_snapshot(self) -> QueuedSnapshot:
        async with self._lock:
            snapshot = self.engine.snapshot()
        payload = {
            "type": "snapshot",
            "generation": snapshot.generation,
            "payload": {
                "generation": snapshot.generation,
                "metrics": asdict(snapshot.metrics),
                "agents": snapshot.agents,
                "world": asdict(snapshot.world),
                "metadata": asdict(snapshot.metadata),
            },
        }
        return QueuedSnapshot(generation=snapshot.generation, payload=json.dumps(payload))

    async def _send_pending_snapshots(self, client: WebSocket) -> None:
        last_sent = self._client_last_sent.get(client, -1)
        async with self._queue_lock:
            pending = [item for item in self._snapshot_queue if item.generation > last_sent]
        for item in pending:
            await client.send_text(item.payload)
            last_sent = item.generation
        self._client_last_sent[client] = last_sent

    async def _broadcast_snapshot(self) -> None:
        queued = await self._serialize_snapshot()
        async with self._queue_lock:
            self._snapshot_queue.append(queued)
        stale: Set[WebSocket] = set()
        for client in self.clients:
            try:
                await self._send_pending_snapshots(client)
            except WebSocketDisconnect:
                stale.add(client)
        for client in stale:
            self.clients.discard(client)
            self._client_last_sent.pop(client, None)


app = FastAPI(title="Murmuration Flocking Simulation")
controller = SimulationController(AppConfig())


@app.on_event("startup")
async def _startup() -> None:
    await controller.start()


@app.get("/api/status")
async def status() -> JSONResponse:
    return JSONResponse(
        {
            "running": controller.running,
            "generation": controller.engine.generation,
            "agent_count": controller.engine.agent_count,
            "speed_multiplier": controller.speed_multiplier,
        }
    )


@app.get("/api/metrics")
async def metrics() -> JSONResponse:
    async with controller._lock:
        swarm_metrics = controller.engine.get_swarm_metrics()
    return JSONResponse(asdict(swarm_metrics))


@app.get("/api/emergence")
async def emergence() -> JSONResponse:
    async with controller._lock:
        report = controller.engine.detect_emergence()
    return JSONResponse(_report_payload(report))


@app.get("/api/agents")
async def agents() -> JSONResponse:
    async with controller._lock:
        snapshot_agents = [controller.engine.agent_payload(agent) for agent in controller.engine.get_agents()]
    return JSONResponse({"generation": controller.engine.generation, "agents": snapshot_agents})


@app.post("/api/agents")
async def add_agent(payload: dict) -> JSONResponse:
    try:
        created = await controller.add_agent(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return JSONResponse(created, status_code=201)


@app.post("/api/control/start")
async def start_simulation() -> JSONResponse:
    controller.running = True
    return JSONResponse({"running": True})


@app.post("/api/control/stop")
async def stop_simulation() -> JSONResponse:
    controller.running = False
    return JSONResponse({"running": False})


@app.post("/api/control/reset")
async def reset_simulation() -> JSONResponse:
    await controller.reset()
    return JSONResponse({"running": controller.running, "generation": controller.engine.generation})


@app.post("/api/control/speed")
async def set_speed(payload: dict) -> JSONResponse:
    speed = float(payload.get("multiplier", 1.0))
    controller.speed_multiplier = max(0.1, min(5.0, speed))
    return JSONResponse({"multiplier": controller.speed_multiplier})


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    controller.clients.add(websocket)
    controller._client_last_sent[websocket] = -1
    await controller._send_pending_snapshots(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            try:
                payload = json.loads(message)
            except json.JSONDecodeError:
                continue
            if payload.get("type") == "ack":
                generation = payload.get("generation")
                if isinstance(generation, int):
                    await controller.acknowledge(generation)
    except WebSocketDisconnect:
        controller.clients.discard(websocket)
        controller._client_last_sent.pop(websocket, None)


__all__ = ["app", "controller"]
