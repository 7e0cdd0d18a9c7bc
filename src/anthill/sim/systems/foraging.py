from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from pygame.math import Vector2

from ..core.agent import Ant, AntState
from ..core.config import AntConfig
from ..core.context import ForagingContext
from ..core.food import FoodSource
from ..core.pheromones import Channel
from ..utils.math2d import _safe_normalize
from .steering import nearest_visible_food

logger = logging.getLogger(__name__)

_RETURN_PATH_BONUS = 0.01
_EXPLORE_PATH_BONUS = 0.02
_EXPLORE_BONUS_CAP = 2.0
_TRIP_BONUS_MAX = 3.0
_PICKUP_MOMENTUM = 0.3
_RESET_MOMENTUM = 0.3


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    efficiency: float
    food_gained: int
    wasted: bool
    leg_distance: float
    trip_ticks: int
    path_points: int


def food_trail_bonus(ant: Ant, config: AntConfig) -> float:
    speed_bonus = max(1.0, _TRIP_BONUS_MAX - ant.trip_ticks / config.trip_bonus_ticks)
    return speed_bonus * (1.0 + len(ant.path) * _RETURN_PATH_BONUS)


def home_trail_bonus(ant: Ant) -> float:
    return 1.0 + min(_EXPLORE_BONUS_CAP, len(ant.path) * _EXPLORE_PATH_BONUS)


def deposit_trail(ant: Ant, ctx: ForagingContext) -> None:
    if ant.trap.escaping:
        return
    pheromone = ctx.config.pheromone
    if ant.carrying:
        ctx.field.deposit(ant.position, Channel.FOOD, pheromone.food_deposit, food_trail_bonus(ant, ctx.config.ant))
    else:
        ctx.field.deposit(ant.position, Channel.HOME, pheromone.home_deposit, home_trail_bonus(ant))


def record_path(ant: Ant, config: AntConfig) -> bool:
    if ant.path and ant.position.distance_to(ant.path[-1]) <= config.path_min_spacing:
        return False
    ant.path.append(Vector2(ant.position))
    if len(ant.path) > config.path_max_points:
        del ant.path[0 : len(ant.path) - config.path_max_points]
    return True


def try_pickup(ant: Ant, ctx: ForagingContext) -> Optional[FoodSource]:
    if ant.carrying or not ant.alive:
        return None
    config = ctx.config.ant
    food = nearest_visible_food(ant.position, ctx.foods, config.food_visual_range)
    if food is None or not food.take(ant.position):
        return None

    if len(ant.path) > config.reinforce_min_points:
        ctx.field.reinforce_path(ant.path, config.discovery_reinforcement)
    ant.start_trip(AntState.RETURNING)
    ant.momentum = _safe_normalize(ctx.nest.position - ant.position) * _PICKUP_MOMENTUM
    ant.energy = ctx.config.lifecycle.max_energy
    return food


def delivery_efficiency(path_points: int, trip_ticks: int, config: AntConfig) -> float:
    distance_score = max(config.efficiency_floor, 1.0 - path_points * config.delivery_path_factor)
    time_score = max(config.efficiency_floor, 1.0 - trip_ticks / config.delivery_time_ticks)
    return (distance_score + time_score) / 2.0


def _finish_trip(ant: Ant, ctx: ForagingContext) -> None:
    ant.start_trip(AntState.EXPLORING)
    ant.momentum = ctx.rng.next_unit_circle() * _RESET_MOMENTUM


def try_deliver(ant: Ant, ctx: ForagingContext) -> Optional[DeliveryOutcome]:
    if not ant.carrying:
        return None
    config = ctx.config.ant
    nest = ctx.nest
    if not nest.contains(ant.position, config.nest_slack):
        return None

    leg_distance = ant.leg_distance
    trip_ticks = ant.trip_ticks
    path_points = len(ant.path)

    if nest.is_full or nest.food_stored >= nest.max_capacity:
        nest.is_full = True
        logger.debug("Nest full, ant %d dropped its load", ant.id)
        _finish_trip(ant, ctx)
        return DeliveryOutcome(
            efficiency=0.0,
            food_gained=0,
            wasted=True,
            leg_distance=leg_distance,
            trip_ticks=trip_ticks,
            path_points=path_points,
        )

    efficiency = delivery_efficiency(path_points, trip_ticks, config)
    nest.record_efficiency(efficiency)
    gained = nest.store(math.floor(1.0 + efficiency))
    if nest.is_full:
        logger.info("Nest reached capacity: %d/%d", nest.food_stored, nest.max_capacity)
    if path_points > config.reinforce_min_points:
        ctx.field.reinforce_path(ant.path, efficiency * config.delivery_reinforcement_gain)

    ant.energy = ctx.config.lifecycle.max_energy
    _finish_trip(ant, ctx)
    return DeliveryOutcome(
        efficiency=efficiency,
        food_gained=gained,
        wasted=False,
        leg_distance=leg_distance,
        trip_ticks=trip_ticks,
        path_points=path_points,
    )
