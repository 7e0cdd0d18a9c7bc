from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from pygame.math import Vector2

from ..core.config import SensorConfig
from ..core.pheromones import Channel, PheromoneField
from ..core.rng import DeterministicRng
from ..utils.math2d import _from_angle, _heading_from_velocity


@dataclass(frozen=True, slots=True)
class SensorReading:
    direction: Vector2
    strength: float


def _cone_offsets(config: SensorConfig) -> list[float]:
    offsets: list[float] = []
    step = config.angle_step
    count = int(math.floor((2.0 * config.half_angle) / step + 1e-9))
    for i in range(count + 1):
        offsets.append(-config.half_angle + i * step)
    return offsets


def forward_sensor(
    field: PheromoneField,
    channel: Channel,
    position: Vector2,
    velocity: Vector2,
    rng: DeterministicRng,
    config: SensorConfig,
) -> Optional[SensorReading]:
    """Antenna model: strongest noisy sample across a forward cone, or ``None``."""
    detection_range = config.detection_range
    noise = config.noise_level
    heading = _heading_from_velocity(velocity)
    boost_success = channel == Channel.FOOD and config.success_weight > 0.0

    best_strength = -1.0
    best_x = 0.0
    best_y = 0.0
    for offset in _cone_offsets(config):
        angle = heading + offset
        sample_x = position.x + math.cos(angle) * detection_range + rng.next_signed(noise * detection_range)
        sample_y = position.y + math.sin(angle) * detection_range + rng.next_signed(noise * detection_range)
        sample_pos = Vector2(sample_x, sample_y)

        strength = field.sample(sample_pos, channel)
        if boost_success and strength > 0.0:
            strength *= 1.0 + config.success_weight * field.success(sample_pos) / 100.0
        distance = math.hypot(sample_x - position.x, sample_y - position.y)
        falloff = max(0.0, 1.0 - distance / detection_range)
        adjusted = strength * falloff
        if adjusted > best_strength:
            best_strength = adjusted
            best_x = sample_x
            best_y = sample_y

    if best_strength < config.detection_threshold:
        return None

    bearing = math.atan2(best_y - position.y, best_x - position.x)
    bearing += rng.next_signed(noise)
    return SensorReading(direction=_from_angle(bearing), strength=best_strength)
