from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, List, Optional

from pygame.math import Vector2

from .agent import Ant
from .config import SimulationConfig
from .context import ForagingContext
from .food import FoodSource
from .nest import Nest
from .obstacle import Obstacle
from .pheromones import PheromoneField
from .rng import DeterministicRng
from ..systems import metrics as metrics_system
from ..systems.behavior import update_ant
from ..systems.layout import Layout, generate_layout, spawn_replacement_food
from ..systems.lifecycle import PopulationController, spawn_ant
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotFields, SnapshotMetadata, SnapshotWorld
from ..utils.math2d import _clamp_length, _safe_normalize

logger = logging.getLogger(__name__)

_LAYOUT_RNG_SALT = 0x1A70D7C0FFEE5EED
_BEHAVIOR_RNG_SALT = 0xA17B3A5E11F00D42

_RELEASE_DISTANCE = 0.8
_RELEASE_CLEARANCE = 15.0
_RELEASE_SPEED = 3.0
_SWEEP_REACH = 20.0
_SWEEP_FORCE = 1.2
_SWEEP_VELOCITY = 3.0
_SWEEP_MAX_SPEED = 8.0
_SWEEP_MIN_MOVE = 0.1


def _derive_stream_seed(seed: int, salt: int) -> int:
    return (int(seed) ^ int(salt)) & 0xFFFFFFFFFFFFFFFF


@dataclass(frozen=True, slots=True)
class DeliveryRecord:
    tick: int
    leg_distance: float
    trip_ticks: int
    efficiency: float
    path_points: int


class World:
    """Owns the arena and advances it one tick at a time.

    All mutation entry points (``translate_obstacle``, ``move_nest`` and so on)
    are meant to be called between ticks.
    """

    def __init__(self, config: SimulationConfig, layout: Optional[Layout] = None):
        self._config = config
        self._layout_rng = DeterministicRng(_derive_stream_seed(config.seed, _LAYOUT_RNG_SALT))
        self._rng = DeterministicRng(_derive_stream_seed(config.seed, _BEHAVIOR_RNG_SALT))
        self._field = PheromoneField(config.width, config.height, config.cell_size, config.pheromone)
        self._population = PopulationController()
        self._target_population = config.ant_count
        self._ants: List[Ant] = []
        self._delivery_log: List[DeliveryRecord] = []
        self._metrics: TickMetrics | None = None
        self._next_id = 0
        self._install_layout(layout if layout is not None else generate_layout(config, self._layout_rng))
        self._bootstrap_population()

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def ants(self) -> List[Ant]:
        return self._ants

    @property
    def obstacles(self) -> List[Obstacle]:
        return self._obstacles

    @property
    def foods(self) -> List[FoodSource]:
        return self._foods

    @property
    def nest(self) -> Nest:
        return self._nest

    @property
    def field(self) -> PheromoneField:
        return self._field

    @property
    def context(self) -> ForagingContext:
        return self._context

    @property
    def delivery_log(self) -> List[DeliveryRecord]:
        return self._delivery_log

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    @property
    def target_population(self) -> int:
        return self._target_population

    def reset(self, layout: Optional[Layout] = None) -> None:
        """Throw everything away and start over on a new layout."""
        self._field = PheromoneField(self._config.width, self._config.height, self._config.cell_size, self._config.pheromone)
        self._ants.clear()
        self._delivery_log.clear()
        self._metrics = None
        self._next_id = 0
        self._target_population = self._config.ant_count
        self._install_layout(layout if layout is not None else generate_layout(self._config, self._layout_rng))
        self._bootstrap_population()
        logger.info("World reset with %d ants", len(self._ants))

    def restart(self) -> None:
        """Same obstacles, food and nest; fresh field, ants and nest store."""
        for food in self._foods:
            food.refill()
        self._nest.reset(max_capacity=sum(food.original_amount for food in self._foods))
        self._field.clear()
        self._ants.clear()
        self._delivery_log.clear()
        self._metrics = None
        self._next_id = 0
        self._bootstrap_population()
        logger.info("World restarted with %d ants", len(self._ants))

    def step(self, tick: int) -> TickMetrics:
        start = perf_counter()
        config = self._config
        ctx = self._context
        counters = {"spawned": 0, "deaths": 0, "pickups": 0, "deliveries": 0, "wasted": 0}
        delivery_distances: List[float] = []

        for ant in self._ants:
            report = update_ant(ant, ctx)
            if report.picked_up:
                counters["pickups"] += 1
            delivery = report.delivery
            if delivery is None:
                continue
            if delivery.wasted:
                counters["wasted"] += 1
                continue
            counters["deliveries"] += 1
            delivery_distances.append(delivery.leg_distance)
            self._delivery_log.append(
                DeliveryRecord(
                    tick=tick,
                    leg_distance=delivery.leg_distance,
                    trip_ticks=delivery.trip_ticks,
                    efficiency=delivery.efficiency,
                    path_points=delivery.path_points,
                )
            )

        self._release_trapped()
        counters["deaths"] = self._remove_dead()
        counters["spawned"] = self._maintain_population(tick)
        self._replace_depleted_food()
        self._field.evaporate(config.evaporation_rate)

        duration_ms = (perf_counter() - start) * 1000.0
        self._metrics = metrics_system.create_metrics(
            tick,
            self._ants,
            self._foods,
            self._nest,
            self._field,
            counters,
            delivery_distances,
            duration_ms,
        )
        return self._metrics

    def set_population(self, count: int) -> None:
        if count < 0:
            raise ValueError(f"population must be >= 0, got {count}")
        self._target_population = int(count)
        if count > len(self._ants):
            for _ in range(count - len(self._ants)):
                self._ants.append(self._spawn())
        elif count < len(self._ants):
            del self._ants[count:]
        logger.info("Population set to %d", count)

    def translate_obstacle(self, index: int, delta: Vector2) -> None:
        """Drag an obstacle without changing its shape, sweeping nearby ants along."""
        obstacle = self._obstacle_at(index)
        delta = Vector2(delta)
        obstacle.translate(delta)
        self._sweep_ants(obstacle, delta)
        self._release_trapped()

    def regenerate_obstacle(self, index: int, center: Vector2, radius: float) -> None:
        if radius <= 0:
            raise ValueError(f"obstacle radius must be > 0, got {radius}")
        obstacle = self._obstacle_at(index)
        layout = self._config.layout
        obstacle.regenerate(
            Vector2(center),
            radius,
            self._layout_rng,
            vertex_count=layout.obstacle_vertices,
            irregularity=layout.obstacle_irregularity,
        )
        self._release_trapped()

    def move_food(self, index: int, position: Vector2) -> None:
        if not 0 <= index < len(self._foods):
            raise IndexError(f"food index {index} out of range (0..{len(self._foods) - 1})")
        self._foods[index].move_to(Vector2(position))

    def move_nest(self, position: Vector2) -> None:
        self._nest.move_to(Vector2(position))

    def current_metrics(self, tick: int) -> TickMetrics:
        """Metrics of the last step, or counts read from the current state before the first step."""
        return self._metrics if self._metrics is not None else self._snapshot_metrics_from_state(tick)

    def snapshot(self, tick: int) -> Snapshot:
        metrics = self.current_metrics(tick)
        config = self._config
        metadata = SnapshotMetadata(
            width=config.width,
            height=config.height,
            sim_dt=config.time_step,
            tick_rate=config.tick_rate,
            seed=config.seed,
            config_version=config.config_version,
        )
        world = SnapshotWorld(
            width=config.width,
            height=config.height,
            obstacles=[obstacle.to_dict() for obstacle in self._obstacles],
            foods=[food.to_dict() for food in self._foods],
            nest=self._nest.to_dict(),
        )
        return Snapshot(
            tick=tick,
            metrics=metrics,
            ants=[self._ant_snapshot(ant) for ant in self._ants if ant.alive],
            world=world,
            metadata=metadata,
            fields=SnapshotFields(pheromones=self._field.export_cells()),
        )

    def _install_layout(self, layout: Layout) -> None:
        self._obstacles = layout.obstacles
        self._foods = layout.foods
        self._nest = layout.nest
        if self._nest.max_capacity <= 0:
            self._nest.reset(max_capacity=sum(food.original_amount for food in self._foods))
        self._context = ForagingContext(
            config=self._config,
            field=self._field,
            obstacles=self._obstacles,
            foods=self._foods,
            nest=self._nest,
            rng=self._rng,
        )

    def _bootstrap_population(self) -> None:
        count = self._target_population
        for i in range(count):
            angle = (i / count) * math.pi * 2
            self._ants.append(self._spawn(angle))
        self._population.reset(self._rng, self._config)

    def _spawn(self, angle: Optional[float] = None) -> Ant:
        ant = spawn_ant(self._next_id, self._config, self._rng, self._nest, self._obstacles, angle=angle)
        self._next_id += 1
        return ant

    def _maintain_population(self, tick: int) -> int:
        count = self._population.due(tick, len(self._ants), self._target_population, self._rng, self._config)
        for _ in range(count):
            self._ants.append(self._spawn())
        return count

    def _replace_depleted_food(self) -> None:
        for i in range(len(self._foods) - 1, -1, -1):
            if not self._foods[i].is_depleted():
                continue
            food = self._foods.pop(i)
            logger.info("Food source at (%.0f, %.0f) depleted", food.position.x, food.position.y)
            if not self._config.layout.respawn_food:
                continue
            replacement = spawn_replacement_food(self._config, self._layout_rng, self._obstacles, self._foods, self._nest)
            if replacement is not None:
                self._foods.append(replacement)

    def _release_trapped(self) -> None:
        for ant in self._ants:
            for obstacle in self._obstacles:
                rep = obstacle.repulse(ant.position, self._rng)
                if rep.distance >= _RELEASE_DISTANCE and not obstacle.contains(ant.position):
                    continue
                center = obstacle.center
                away = _safe_normalize(ant.position - center)
                if away.length_squared() == 0.0:
                    away = self._rng.next_unit_circle()
                ant.position = center + away * (obstacle.base_radius + _RELEASE_CLEARANCE)
                ant.velocity = away * _RELEASE_SPEED
                logger.debug("Released ant %d from obstacle at (%.0f, %.0f)", ant.id, center.x, center.y)

    def _sweep_ants(self, obstacle: Obstacle, delta: Vector2) -> None:
        movement = delta.length()
        if movement < _SWEEP_MIN_MOVE:
            return
        direction = delta / movement
        sweep_range = obstacle.base_radius + _SWEEP_REACH
        for ant in self._ants:
            rep = obstacle.repulse(ant.position, self._rng)
            if rep.distance >= sweep_range:
                continue
            force = max(0.0, (sweep_range - rep.distance) / sweep_range) * _SWEEP_FORCE
            ant.position = ant.position + delta * force
            ant.velocity = _clamp_length(ant.velocity + direction * (force * _SWEEP_VELOCITY), _SWEEP_MAX_SPEED)

    def _obstacle_at(self, index: int) -> Obstacle:
        if not 0 <= index < len(self._obstacles):
            raise IndexError(f"obstacle index {index} out of range (0..{len(self._obstacles) - 1})")
        return self._obstacles[index]

    def _remove_dead(self) -> int:
        deaths = 0
        survivors = []
        for ant in self._ants:
            if ant.alive:
                survivors.append(ant)
            else:
                deaths += 1
        self._ants[:] = survivors
        return deaths

    def _ant_snapshot(self, ant: Ant) -> Dict[str, Any]:
        return {
            "id": ant.id,
            "x": ant.position.x,
            "y": ant.position.y,
            "vx": ant.velocity.x,
            "vy": ant.velocity.y,
            "state": ant.state.value,
            "carrying": ant.carrying,
            "heading": ant.heading,
            "speed": ant.velocity.length(),
            "energy": ant.energy,
            "age": ant.age,
            "escaping": ant.trap.escaping,
        }

    def _snapshot_metrics_from_state(self, tick: int) -> TickMetrics:
        return metrics_system.create_metrics(tick, self._ants, self._foods, self._nest, self._field, {}, [], 0.0)
