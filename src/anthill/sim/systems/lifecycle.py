from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from pygame.math import Vector2

from ..core.agent import Ant, AntState
from ..core.config import LifecycleConfig, SimulationConfig
from ..core.nest import Nest
from ..core.obstacle import Obstacle
from ..core.rng import DeterministicRng
from ..utils.math2d import _from_angle, _heading_from_velocity
from .layout import spawn_position

logger = logging.getLogger(__name__)


def draw_lifespan(rng: DeterministicRng, config: LifecycleConfig) -> float:
    return config.lifespan_ticks + rng.next_signed(config.lifespan_jitter_ticks)


def energy_speed_factor(ant: Ant, config: LifecycleConfig) -> float:
    return max(config.low_energy_speed_floor, ant.energy / config.max_energy)


def apply_aging(ant: Ant, config: SimulationConfig) -> bool:
    """Advance age and energy; returns True if the ant died this tick."""
    if not ant.alive:
        return False
    life = config.lifecycle
    if not life.mortal:
        return False
    ant.age += 1
    ant.energy -= life.energy_decay
    if ant.age > ant.lifespan or ant.energy <= 0.0:
        ant.state = AntState.DEAD
        ant.velocity = Vector2()
        logger.debug("Ant %d died at age %d", ant.id, ant.age)
        return True
    ant.max_speed = config.ant.max_speed * energy_speed_factor(ant, life)
    return False


def spawn_ant(
    ant_id: int,
    config: SimulationConfig,
    rng: DeterministicRng,
    nest: Nest,
    obstacles: Sequence[Obstacle],
    angle: Optional[float] = None,
) -> Ant:
    """New exploring ant near the nest.

    With ``angle`` given the ant is placed along that bearing and heads
    roughly outward; otherwise both placement and heading are random.
    """
    if angle is None:
        position = spawn_position(config, rng, nest, obstacles)
        velocity = rng.next_unit_circle() * config.ant.initial_speed
    else:
        position = spawn_position(config, rng, nest, obstacles, angle=angle, angle_jitter=0.5)
        outward = _heading_from_velocity(position - nest.position)
        velocity = _from_angle(outward + rng.next_signed(math.pi), config.ant.initial_speed)
    ant = Ant(
        id=ant_id,
        position=position,
        velocity=velocity,
        max_speed=config.ant.max_speed,
        heading=_heading_from_velocity(velocity),
        energy=config.lifecycle.max_energy,
    )
    ant.lifespan = draw_lifespan(rng, config.lifecycle)
    return ant


@dataclass(slots=True)
class PopulationController:
    """Decides how many ants to add this tick to approach the target count."""

    last_spawn_tick: int = 0
    next_interval: int = 0

    def reset(self, rng: DeterministicRng, config: SimulationConfig, tick: int = 0) -> None:
        population = config.population
        self.last_spawn_tick = tick
        self.next_interval = population.interval_min + rng.next_int(population.interval_max - population.interval_min + 1)

    def due(self, tick: int, current: int, target: int, rng: DeterministicRng, config: SimulationConfig) -> int:
        population = config.population
        if not population.maintain or current >= target:
            return 0
        missing = target - current
        if current < target * population.emergency_fraction:
            batch = population.emergency_batch_min + rng.next_int(
                population.emergency_batch_max - population.emergency_batch_min + 1
            )
            self.last_spawn_tick = tick
            self.next_interval = population.emergency_interval_min + rng.next_int(
                population.emergency_interval_max - population.emergency_interval_min + 1
            )
            count = min(batch, missing)
            logger.info("Emergency spawn of %d ants (population %d/%d)", count, current, target)
            return count
        if tick - self.last_spawn_tick < self.next_interval:
            return 0
        batch = population.batch_min + rng.next_int(population.batch_max - population.batch_min + 1)
        self.last_spawn_tick = tick
        self.next_interval = population.interval_min + rng.next_int(population.interval_max - population.interval_min + 1)
        count = min(batch, missing)
        logger.debug("Spawning %d ants (population %d/%d)", count, current, target)
        return count
