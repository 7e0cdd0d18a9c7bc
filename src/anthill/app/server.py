from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional

from fastapi import APIRouter, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from pygame.math import Vector2

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World

logger = logging.getLogger(__name__)

Mutation = Callable[[World], None]


@dataclass(frozen=True)
class QueuedSnapshot:
    tick: int
    payload: str


class SnapshotFeed:
    """Serialized snapshots held until acknowledged, with a send cursor per client.

    At most ``backlog`` snapshots are kept, oldest dropped first. With no client
    attached only the latest one is kept, for whoever connects next.
    """

    def __init__(self, backlog: int = 120) -> None:
        self._items: deque[QueuedSnapshot] = deque(maxlen=max(1, backlog))
        self._cursors: dict[WebSocket, int] = {}
        self._lock = asyncio.Lock()

    @property
    def clients(self) -> list[WebSocket]:
        return list(self._cursors)

    def attach(self, client: WebSocket) -> None:
        self._cursors[client] = -1

    def detach(self, client: WebSocket) -> None:
        self._cursors.pop(client, None)

    async def queued_ticks(self) -> list[int]:
        async with self._lock:
            return [item.tick for item in self._items]

    async def publish(self, item: QueuedSnapshot) -> None:
        async with self._lock:
            if not self._cursors:
                self._items.clear()
            self._items.append(item)
        await self.flush()

    async def acknowledge(self, tick: int) -> None:
        async with self._lock:
            while self._items and self._items[0].tick <= tick:
                self._items.popleft()

    async def rewind(self) -> None:
        async with self._lock:
            self._items.clear()
        for client in self._cursors:
            self._cursors[client] = -1

    async def deliver(self, client: WebSocket) -> None:
        cursor = self._cursors.get(client, -1)
        async with self._lock:
            backlog = [item for item in self._items if item.tick > cursor]
        for item in backlog:
            await client.send_text(item.payload)
            self._cursors[client] = item.tick

    async def flush(self) -> None:
        for client in self.clients:
            try:
                await self.deliver(client)
            except WebSocketDisconnect:
                logger.debug("Dropping disconnected client")
                self.detach(client)


def parse_vector(payload: dict, x_key: str = "x", y_key: str = "y") -> Vector2:
    try:
        return Vector2(float(payload[x_key]), float(payload[y_key]))
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"expected numeric '{x_key}' and '{y_key}'") from exc


def _message_index(message: dict) -> int:
    index = message.get("index")
    if isinstance(index, bool) or not isinstance(index, int):
        raise ValueError("expected integer 'index'")
    return index


def drag_mutation(message: dict) -> Mutation:
    """Translate a websocket drag message into a world mutation."""
    target = message.get("target")
    if target == "obstacle":
        index = _message_index(message)
        delta = parse_vector(message, "dx", "dy")
        return lambda world: world.translate_obstacle(index, delta)
    if target == "food":
        index = _message_index(message)
        position = parse_vector(message)
        return lambda world: world.move_food(index, position)
    if target == "nest":
        position = parse_vector(message)
        return lambda world: world.move_nest(position)
    raise ValueError(f"unknown drag target: {target!r}")


class SimulationController:
    def __init__(self, config: SimulationConfig, broadcast_interval: int = 1, snapshot_backlog: int = 120):
        self.config = config
        self.world = World(config)
        self.feed = SnapshotFeed(snapshot_backlog)
        self.broadcast_interval = max(1, broadcast_interval)
        self.running = False
        self.tick = 0
        self.speed_multiplier = 1.0
        self._world_lock = asyncio.Lock()
        self._ticker: Optional[asyncio.Task] = None

    async def start(self) -> None:
        if self._ticker is None:
            self._ticker = asyncio.create_task(self._run())
            self._ticker.add_done_callback(self._ticker_done)
        self.running = True

    async def stop(self) -> None:
        self.running = False

    async def shutdown(self) -> None:
        self.running = False
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _ticker_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.running = False
            self._ticker = None
            logger.error("Simulation loop stopped at tick %d", self.tick, exc_info=exc)

    async def reset(self) -> None:
        await self._rebuild(World.reset)

    async def restart(self) -> None:
        await self._rebuild(World.restart)

    async def apply(self, mutation: Mutation) -> None:
        """Run ``mutation`` between ticks and push the result to clients."""
        async with self._world_lock:
            mutation(self.world)
        await self.publish_snapshot()

    async def acknowledge(self, tick: int) -> None:
        await self.feed.acknowledge(tick)

    async def handle_message(self, message: dict) -> None:
        kind = message.get("type")
        if kind == "ack":
            if isinstance(message.get("tick"), int):
                await self.acknowledge(message["tick"])
        elif kind == "control":
            await self.control(message.get("action"))
        elif kind == "drag":
            await self.apply(drag_mutation(message))
        else:
            logger.debug("Ignoring websocket message of type %r", kind)

    async def control(self, action: Any) -> None:
        if action == "start":
            self.running = True
        elif action == "stop":
            await self.stop()
        elif action == "reset":
            await self.reset()
        elif action == "restart":
            await self.restart()
        else:
            raise ValueError(f"unknown control action: {action!r}")

    def snapshot_payload(self) -> dict:
        snap = self.world.snapshot(self.tick)
        payload = {name: asdict(getattr(snap, name)) for name in ("metrics", "world", "metadata", "fields")}
        payload["tick"] = snap.tick
        payload["ants"] = snap.ants
        return payload

    def _serialize_snapshot(self) -> QueuedSnapshot:
        message = {"type": "snapshot", "tick": self.tick, "payload": self.snapshot_payload()}
        return QueuedSnapshot(tick=self.tick, payload=json.dumps(message))

    async def publish_snapshot(self) -> None:
        await self.feed.publish(self._serialize_snapshot())

    async def _rebuild(self, action: Mutation) -> None:
        async with self._world_lock:
            action(self.world)
            self.tick = 0
        await self.feed.rewind()
        await self.publish_snapshot()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.config.time_step / self.speed_multiplier)
            if not self.running:
                continue
            async with self._world_lock:
                self.world.step(self.tick)
                self.tick += 1
            if self.tick % self.broadcast_interval == 0:
                await self.publish_snapshot()


def _vector(payload: dict, x_key: str = "x", y_key: str = "y") -> Vector2:
    try:
        return parse_vector(payload, x_key, y_key)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


async def _apply_or_raise(mutation: Mutation) -> None:
    try:
        await controller.apply(mutation)
    except IndexError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


controller = SimulationController(SimulationConfig())


@asynccontextmanager
async def lifespan(_: FastAPI):
    await controller.start()
    yield
    await controller.shutdown()


api = APIRouter(prefix="/api")


@api.get("/status")
async def status() -> dict:
    world = controller.world
    return {
        "running": controller.running,
        "tick": controller.tick,
        "population": len(world.ants),
        "target_population": world.target_population,
        "metrics": asdict(world.current_metrics(controller.tick)),
    }


@api.get("/snapshot")
async def snapshot() -> dict:
    return controller.snapshot_payload()


@api.post("/control/speed")
async def set_speed(payload: dict) -> dict:
    try:
        multiplier = float(payload.get("multiplier", 1.0))
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="multiplier must be a number") from exc
    controller.speed_multiplier = min(5.0, max(0.1, multiplier))
    return {"multiplier": controller.speed_multiplier}


@api.post("/control/{action}")
async def control(action: str) -> dict:
    try:
        await controller.control(action)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"running": controller.running, "tick": controller.tick}


@api.post("/population")
async def set_population(payload: dict) -> dict:
    count = payload.get("count")
    if isinstance(count, bool) or not isinstance(count, int):
        raise HTTPException(status_code=400, detail="count must be an integer")
    await _apply_or_raise(lambda world: world.set_population(count))
    return {"population": len(controller.world.ants)}


@api.post("/obstacles/{index}/translate")
async def translate_obstacle(index: int, payload: dict) -> dict:
    delta = _vector(payload, "dx", "dy")
    await _apply_or_raise(lambda world: world.translate_obstacle(index, delta))
    return controller.world.obstacles[index].to_dict()


@api.post("/obstacles/{index}/regenerate")
async def regenerate_obstacle(index: int, payload: dict) -> dict:
    center = _vector(payload)
    try:
        radius = float(payload["radius"])
    except (KeyError, TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail="expected numeric 'radius'") from exc
    await _apply_or_raise(lambda world: world.regenerate_obstacle(index, center, radius))
    return controller.world.obstacles[index].to_dict()


@api.post("/foods/{index}/move")
async def move_food(index: int, payload: dict) -> dict:
    position = _vector(payload)
    await _apply_or_raise(lambda world: world.move_food(index, position))
    return controller.world.foods[index].to_dict()


@api.post("/nest/move")
async def move_nest(payload: dict) -> dict:
    position = _vector(payload)
    await _apply_or_raise(lambda world: world.move_nest(position))
    return controller.world.nest.to_dict()


app = FastAPI(title="Anthill Foraging Simulation", lifespan=lifespan)
app.include_router(api)


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    await websocket.accept()
    controller.feed.attach(websocket)
    await controller.feed.deliver(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("Ignoring malformed websocket message")
                continue
            if not isinstance(message, dict):
                continue
            try:
                await controller.handle_message(message)
            except (IndexError, ValueError) as exc:
                await websocket.send_text(json.dumps({"type": "error", "detail": str(exc)}))
    except WebSocketDisconnect:
        controller.feed.detach(websocket)


__all__ = ["app", "controller"]
