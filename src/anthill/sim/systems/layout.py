from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from pygame.math import Vector2

from ..core.config import SimulationConfig
from ..core.food import FoodSource
from ..core.nest import Nest
from ..core.obstacle import Obstacle
from ..core.rng import DeterministicRng
from ..utils.math2d import _clamp_value, _from_angle

logger = logging.getLogger(__name__)

_NEST_STRATEGY_SPREAD = 200.0
_NEST_STRATEGY_TRIES = 50
_NEST_SCAN_STEP = 50.0
_LAYOUT_MARGIN = 100.0


@dataclass(slots=True)
class Layout:
    obstacles: List[Obstacle]
    foods: List[FoodSource]
    nest: Nest


def generate_obstacles(config: SimulationConfig, rng: DeterministicRng) -> List[Obstacle]:
    layout = config.layout
    obstacles: List[Obstacle] = []
    for _ in range(layout.obstacle_count):
        for _attempt in range(layout.placement_attempts):
            radius = rng.next_range(layout.obstacle_radius_min, layout.obstacle_radius_max)
            center = _random_point(config, rng, _LAYOUT_MARGIN)
            if _clear_of_obstacles(center, radius + layout.obstacle_spacing, obstacles):
                obstacles.append(
                    Obstacle.generate(
                        center,
                        radius,
                        rng,
                        vertex_count=layout.obstacle_vertices,
                        irregularity=layout.obstacle_irregularity,
                    )
                )
                break
        else:
            logger.debug("Skipped an obstacle after %d placement attempts", layout.placement_attempts)
    return obstacles


def generate_foods(
    config: SimulationConfig, rng: DeterministicRng, obstacles: Sequence[Obstacle], nest: Optional[Nest] = None
) -> List[FoodSource]:
    """Food sources away from obstacles, each other and (when given) the nest."""
    layout = config.layout
    count = layout.food_count_min + rng.next_int(layout.food_count_max - layout.food_count_min + 1)
    foods: List[FoodSource] = []
    for _ in range(count):
        for _attempt in range(layout.placement_attempts):
            radius = rng.next_range(layout.food_radius_min, layout.food_radius_max)
            position = _random_point(config, rng, _LAYOUT_MARGIN)
            if _food_fits(
                position,
                radius,
                obstacles,
                foods,
                nest,
                obstacle_buffer=layout.food_obstacle_buffer,
                food_spacing=layout.food_spacing,
                nest_buffer=layout.food_nest_buffer,
            ):
                foods.append(FoodSource(position, radius, layout.food_amount))
                break
        else:
            logger.debug("Skipped a food source after %d placement attempts", layout.placement_attempts)
    return foods


def place_nest(config: SimulationConfig, rng: DeterministicRng, obstacles: Sequence[Obstacle], foods: Sequence[FoodSource]) -> Nest:
    layout = config.layout
    nest = Nest(Vector2(config.width / 2, config.height / 2), radius=layout.nest_radius)
    for index, strategy in enumerate(_nest_strategies(config, rng)):
        for _ in range(_NEST_STRATEGY_TRIES):
            candidate = _clamp_to_margin(strategy(), config, layout.nest_margin)
            if _nest_fits(candidate, nest.radius, obstacles, foods, config):
                nest.move_to(candidate)
                logger.debug("Nest placed with strategy %d at (%.0f, %.0f)", index + 1, candidate.x, candidate.y)
                return nest

    best, overlap = _least_crowded_spot(config, nest.radius, obstacles)
    nest.move_to(best)
    logger.warning("No clear nest position; using least crowded spot (%.0f, %.0f), overlap %.1f", best.x, best.y, overlap)
    return nest


def generate_layout(config: SimulationConfig, rng: DeterministicRng) -> Layout:
    obstacles = generate_obstacles(config, rng)
    # Food keeps its distance from the arena centre, where the nest is tried first.
    provisional = Nest(Vector2(config.width / 2, config.height / 2), radius=config.layout.nest_radius)
    foods = generate_foods(config, rng, obstacles, provisional)
    nest = place_nest(config, rng, obstacles, foods)
    nest.reset(max_capacity=sum(food.original_amount for food in foods))
    logger.info(
        "Layout: %d obstacles, %d food sources, nest capacity %d",
        len(obstacles),
        len(foods),
        nest.max_capacity,
    )
    return Layout(obstacles=obstacles, foods=foods, nest=nest)


def spawn_replacement_food(
    config: SimulationConfig,
    rng: DeterministicRng,
    obstacles: Sequence[Obstacle],
    foods: Sequence[FoodSource],
    nest: Nest,
) -> Optional[FoodSource]:
    layout = config.layout
    for _ in range(layout.placement_attempts):
        radius = rng.next_range(layout.food_radius_min, layout.food_radius_max)
        position = _random_point(config, rng, layout.respawn_margin)
        if _food_fits(
            position,
            radius,
            obstacles,
            foods,
            nest,
            obstacle_buffer=layout.food_obstacle_buffer,
            food_spacing=layout.respawn_food_spacing,
            nest_buffer=layout.nest_food_buffer,
        ):
            logger.info("New food source at (%.0f, %.0f)", position.x, position.y)
            return FoodSource(position, radius, layout.food_amount)
    logger.warning("Could not place a replacement food source")
    return None


def spawn_position(
    config: SimulationConfig,
    rng: DeterministicRng,
    nest: Nest,
    obstacles: Sequence[Obstacle],
    angle: Optional[float] = None,
    angle_jitter: float = 0.0,
) -> Vector2:
    """Point near the nest clear of obstacles; the last candidate wins if none is clear."""
    layout = config.layout
    position = Vector2(nest.position)
    for _ in range(layout.spawn_attempts):
        theta = rng.next_angle() if angle is None else angle + rng.next_float() * angle_jitter
        distance = rng.next_range(layout.spawn_distance_min, layout.spawn_distance_max)
        position = nest.position + _from_angle(theta, distance)
        if all(obstacle.repulse(position, rng).distance >= layout.spawn_clearance for obstacle in obstacles):
            return position
    return position


def _random_point(config: SimulationConfig, rng: DeterministicRng, margin: float) -> Vector2:
    span_x = max(0.0, config.width - 2 * margin)
    span_y = max(0.0, config.height - 2 * margin)
    return Vector2(margin + rng.next_float() * span_x, margin + rng.next_float() * span_y)


def _clamp_to_margin(position: Vector2, config: SimulationConfig, margin: float) -> Vector2:
    low_x, high_x = margin, max(margin, config.width - margin)
    low_y, high_y = margin, max(margin, config.height - margin)
    return Vector2(_clamp_value(position.x, low_x, high_x), _clamp_value(position.y, low_y, high_y))


def _clear_of_obstacles(center: Vector2, reach: float, obstacles: Sequence[Obstacle]) -> bool:
    for obstacle in obstacles:
        if center.distance_to(obstacle.center) < reach + obstacle.base_radius:
            return False
    return True


def _food_fits(
    position: Vector2,
    radius: float,
    obstacles: Sequence[Obstacle],
    foods: Sequence[FoodSource],
    nest: Optional[Nest],
    *,
    obstacle_buffer: float,
    food_spacing: float,
    nest_buffer: float,
) -> bool:
    if not _clear_of_obstacles(position, radius + obstacle_buffer, obstacles):
        return False
    for food in foods:
        if position.distance_to(food.position) < radius + food.radius + food_spacing:
            return False
    if nest is not None and position.distance_to(nest.position) < radius + nest.radius + nest_buffer:
        return False
    return True


def _nest_fits(
    position: Vector2, radius: float, obstacles: Sequence[Obstacle], foods: Sequence[FoodSource], config: SimulationConfig
) -> bool:
    layout = config.layout
    if not _clear_of_obstacles(position, radius + layout.nest_obstacle_buffer, obstacles):
        return False
    for food in foods:
        if position.distance_to(food.position) < radius + food.radius + layout.nest_food_buffer:
            return False
    return True


def _nest_strategies(config: SimulationConfig, rng: DeterministicRng) -> List[Callable[[], Vector2]]:
    width = config.width
    height = config.height
    margin = config.layout.nest_margin
    spread = _NEST_STRATEGY_SPREAD

    def near(x: float, y: float, sx: float, sy: float) -> Callable[[], Vector2]:
        return lambda: Vector2(x + sx * rng.next_float() * spread, y + sy * rng.next_float() * spread)

    return [
        lambda: Vector2(width / 2 + rng.next_signed(spread), height / 2 + rng.next_signed(spread)),
        near(margin, margin, 1.0, 1.0),
        near(width - margin, margin, -1.0, 1.0),
        near(margin, height - margin, 1.0, -1.0),
        near(width - margin, height - margin, -1.0, -1.0),
        lambda: _random_point(config, rng, margin),
    ]


def _least_crowded_spot(config: SimulationConfig, radius: float, obstacles: Sequence[Obstacle]) -> tuple[Vector2, float]:
    margin = config.layout.nest_margin
    best = Vector2(config.width / 2, config.height / 2)
    best_overlap = math.inf
    x = margin
    while x < config.width - margin:
        y = margin
        while y < config.height - margin:
            candidate = Vector2(x, y)
            overlap = 0.0
            for obstacle in obstacles:
                reach = radius + obstacle.base_radius
                distance = candidate.distance_to(obstacle.center)
                if distance < reach:
                    overlap += reach - distance
            if overlap < best_overlap:
                best_overlap = overlap
                best = candidate
            y += _NEST_SCAN_STEP
        x += _NEST_SCAN_STEP
    if best_overlap == math.inf:
        best_overlap = 0.0
    return best, best_overlap
