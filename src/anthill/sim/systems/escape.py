from __future__ import annotations

import logging
import math
from typing import Optional

from pygame.math import Vector2

from ..core.agent import Ant
from ..core.config import EscapeConfig
from ..core.context import ForagingContext

logger = logging.getLogger(__name__)


def goal_position(ant: Ant, ctx: ForagingContext) -> Optional[Vector2]:
    """Nest while carrying, otherwise the nearest food source with any left."""
    if ant.carrying:
        return ctx.nest.position
    nearest: Optional[Vector2] = None
    nearest_dist = math.inf
    for food in ctx.foods:
        if food.is_depleted():
            continue
        dist = ant.position.distance_to(food.position)
        if dist < nearest_dist:
            nearest_dist = dist
            nearest = food.position
    return nearest


def tick_escape(ant: Ant) -> None:
    trap = ant.trap
    if trap.escape_ticks_left > 0:
        trap.escape_ticks_left -= 1
        if trap.escape_ticks_left == 0:
            logger.debug("Ant %d left escape mode", ant.id)


def enter_escape(ant: Ant, config: EscapeConfig) -> bool:
    trap = ant.trap
    if trap.escape_attempts >= config.max_attempts or config.duration_ticks <= 0:
        return False
    trap.escape_ticks_left = config.duration_ticks
    trap.escape_attempts += 1
    trap.clear_progress()
    logger.debug("Ant %d entered escape mode (attempt %d/%d)", ant.id, trap.escape_attempts, config.max_attempts)
    return True


def check_trapped(ant: Ant, ctx: ForagingContext) -> bool:
    """Track progress toward the current goal; returns True when escape mode starts."""
    config = ctx.config.escape
    if not config.enabled:
        return False
    trap = ant.trap
    trap.check_counter += 1
    if trap.check_counter < config.check_interval:
        return False
    trap.check_counter = 0

    goal = goal_position(ant, ctx)
    if goal is None:
        return False
    distance = ant.position.distance_to(goal)
    if trap.initial_goal_distance == 0.0:
        trap.initial_goal_distance = distance

    trap.progress_history.append(trap.initial_goal_distance - distance)
    if len(trap.progress_history) > config.history_length:
        del trap.progress_history[0 : len(trap.progress_history) - config.history_length]

    recent = trap.progress_history[-1] - trap.progress_history[0]
    if recent > config.progress_threshold:
        trap.trapped_checks = 0
        trap.escape_ticks_left = 0
        trap.escape_attempts = 0
        return False

    trap.trapped_checks += 1
    if trap.trapped_checks > config.trapped_checks and not trap.escaping:
        return enter_escape(ant, config)
    return False
