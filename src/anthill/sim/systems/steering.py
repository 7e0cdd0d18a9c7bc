from __future__ import annotations

import math
from typing import Optional, Sequence

from pygame.math import Vector2

from ..core.agent import Ant, AntState
from ..core.config import AntConfig, SimulationConfig
from ..core.context import ForagingContext
from ..core.food import FoodSource
from ..core.obstacle import Obstacle
from ..core.pheromones import Channel
from ..core.rng import DeterministicRng
from ..utils.math2d import _clamp_length, _from_angle, _heading_from_velocity, _safe_normalize, _wrap_angle
from .sensing import forward_sensor

_MIN_TURNING_SPEED = 0.1
_DIRECT_HOMING_WEIGHT = 0.7
_HOMING_JITTER = 0.3


def nearest_visible_food(position: Vector2, foods: Sequence[FoodSource], max_range: float) -> Optional[FoodSource]:
    nearest = None
    nearest_dist = math.inf
    for food in foods:
        if food.is_depleted():
            continue
        dist = position.distance_to(food.position)
        if dist < nearest_dist and dist < max_range:
            nearest_dist = dist
            nearest = food
    return nearest


def returning_direction(ant: Ant, ctx: ForagingContext) -> Vector2:
    config = ctx.config.ant
    rng = ctx.rng
    nest_pos = ctx.nest.position
    to_nest = _safe_normalize(nest_pos - ant.position)
    nest_distance = ant.position.distance_to(nest_pos)

    if nest_distance < config.nest_near_radius:
        bias = min(config.directness_cap, (config.nest_near_radius - nest_distance) / config.nest_near_radius)
        return to_nest * bias + rng.next_unit_circle() * (1.0 - bias)

    reading = forward_sensor(ctx.field, Channel.HOME, ant.position, ant.velocity, rng, ctx.config.sensor)
    if reading is not None:
        attraction = min(config.home_attraction_cap, reading.strength)
        return reading.direction * attraction + to_nest * config.home_trail_weight
    return to_nest * _DIRECT_HOMING_WEIGHT + rng.next_unit_circle() * _HOMING_JITTER


def exploring_direction(ant: Ant, ctx: ForagingContext) -> Vector2:
    config = ctx.config.ant
    rng = ctx.rng
    food = nearest_visible_food(ant.position, ctx.foods, config.food_visual_range)
    if food is not None:
        distance = ant.position.distance_to(food.position)
        to_food = _safe_normalize(food.position - ant.position)
        bias = min(config.directness_cap, (config.food_visual_range - distance) / config.food_visual_range)
        direction = to_food * bias + rng.next_unit_circle() * (1.0 - bias)
        if distance < config.food_urgency_radius:
            direction = direction * config.food_urgency_scale
        return direction

    reading = forward_sensor(ctx.field, Channel.FOOD, ant.position, ant.velocity, rng, ctx.config.sensor)
    if reading is not None:
        attraction = min(config.food_attraction_cap, reading.strength)
        return reading.direction * attraction + rng.next_unit_circle() * config.explore_jitter

    direction = rng.next_unit_circle() + ant.momentum * config.wander_momentum_weight
    if config.gradient_follow_weight > 0.0:
        direction += ctx.field.gradient(ant.position, Channel.FOOD) * config.gradient_follow_weight
    return direction


def escape_direction(ant: Ant, ctx: ForagingContext) -> Vector2:
    escape = ctx.config.escape
    rng = ctx.rng
    if ant.carrying:
        away = _safe_normalize(ant.position - ctx.nest.position)
        return away * escape.goal_bias_returning + rng.next_unit_circle() * (1.0 - escape.goal_bias_returning)
    food = nearest_visible_food(ant.position, ctx.foods, ctx.config.ant.food_visual_range)
    if food is None:
        return rng.next_unit_circle()
    away = _safe_normalize(ant.position - food.position)
    return away * escape.goal_bias_exploring + rng.next_unit_circle() * (1.0 - escape.goal_bias_exploring)


def goal_direction(ant: Ant, ctx: ForagingContext) -> Vector2:
    if ant.trap.escaping:
        return escape_direction(ant, ctx)
    if ant.state == AntState.RETURNING:
        return returning_direction(ant, ctx)
    return exploring_direction(ant, ctx)


def obstacle_avoidance(
    position: Vector2, obstacles: Sequence[Obstacle], config: AntConfig, rng: DeterministicRng | None = None
) -> Vector2:
    total = Vector2()
    count = 0
    for obstacle in obstacles:
        rep = obstacle.repulse(position, rng)
        if rep.distance < config.obstacle_avoid_radius:
            force = max(config.obstacle_avoid_min_force, config.obstacle_avoid_gain / (rep.distance + 0.1))
            total += rep.direction * force
            count += 1
    if count == 0:
        return total
    if config.obstacle_force_mode == "average":
        total = total / count
    return total * config.obstacle_avoid_weight


def normalize_or_random(direction: Vector2, rng: DeterministicRng) -> Vector2:
    normalized = _safe_normalize(direction)
    if normalized.length_squared() == 0.0:
        return rng.next_unit_circle()
    return normalized


def apply_momentum(ant: Ant, direction: Vector2, config: AntConfig, rng: DeterministicRng) -> Vector2:
    weight = config.momentum_weight_returning if ant.carrying else config.momentum_weight_exploring
    ant.momentum = ant.momentum * config.momentum_decay + direction * (1.0 - config.momentum_decay)
    blended = direction * (1.0 - weight) + ant.momentum * weight
    return normalize_or_random(blended, rng)


def limit_turn(velocity: Vector2, direction: Vector2, max_turn_rate: float) -> float:
    """Heading for this tick, at most ``max_turn_rate`` away from ``velocity``."""
    target = _heading_from_velocity(direction)
    current = _heading_from_velocity(velocity)
    diff = _wrap_angle(target - current)
    if abs(diff) > max_turn_rate:
        diff = math.copysign(max_turn_rate, diff)
    return current + diff


def target_speed(ant: Ant, config: AntConfig) -> float:
    return config.return_speed if ant.carrying else config.explore_speed


def next_velocity(ant: Ant, direction: Vector2, config: AntConfig) -> Vector2:
    target = target_speed(ant, config)
    current = ant.velocity.length()
    if current <= _MIN_TURNING_SPEED:
        # Too slow to have a meaningful heading: start fresh along the intent.
        velocity = direction * target
    else:
        diff = target - current
        change = math.copysign(min(abs(diff), config.acceleration), diff)
        heading = limit_turn(ant.velocity, direction, config.max_turn_rate)
        velocity = _from_angle(heading, current + change)
    return _clamp_length(velocity, ant.max_speed)


def resolve_collision(
    position: Vector2, velocity: Vector2, obstacles: Sequence[Obstacle], config: AntConfig, rng: DeterministicRng
) -> tuple[Vector2, Vector2]:
    candidate = position + velocity
    for obstacle in obstacles:
        rep = obstacle.repulse(candidate, rng)
        if rep.distance < config.collision_distance:
            velocity = rep.direction * config.bounce_factor
            candidate = position + velocity
            break
    return candidate, velocity


def reflect_at_bounds(
    position: Vector2, velocity: Vector2, width: float, height: float, config: AntConfig, rng: DeterministicRng
) -> tuple[Vector2, Vector2]:
    margin = config.boundary_margin
    damping = config.boundary_damping
    jitter = config.boundary_jitter
    x, y = position.x, position.y
    vx, vy = velocity.x, velocity.y
    if x < margin:
        x = margin
        vx = abs(vx) * damping
        vy += rng.next_signed(jitter)
    if x > width - margin:
        x = width - margin
        vx = -abs(vx) * damping
        vy += rng.next_signed(jitter)
    if y < margin:
        y = margin
        vy = abs(vy) * damping
        vx += rng.next_signed(jitter)
    if y > height - margin:
        y = height - margin
        vy = -abs(vy) * damping
        vx += rng.next_signed(jitter)
    return Vector2(x, y), Vector2(vx, vy)


def steer(ant: Ant, ctx: ForagingContext) -> Vector2:
    config = ctx.config.ant
    rng = ctx.rng
    direction = goal_direction(ant, ctx)
    if ant.carrying:
        ant.momentum = ant.momentum * config.returning_momentum_damping
    direction = direction + obstacle_avoidance(ant.position, ctx.obstacles, config, rng)
    direction = normalize_or_random(direction, rng)
    direction = apply_momentum(ant, direction, config, rng)
    ant.last_direction = direction
    return direction


def move(ant: Ant, direction: Vector2, ctx: ForagingContext) -> None:
    config = ctx.config.ant
    sim: SimulationConfig = ctx.config
    rng = ctx.rng
    velocity = next_velocity(ant, direction, config)

    previous = Vector2(ant.position)
    position, velocity = resolve_collision(ant.position, velocity, ctx.obstacles, config, rng)
    position, velocity = reflect_at_bounds(position, velocity, sim.width, sim.height, config, rng)
    ant.position = position
    ant.velocity = velocity
    ant.leg_distance += position.distance_to(previous)
    if velocity.length_squared() > 1e-8:
        ant.heading = _heading_from_velocity(velocity)
