from __future__ import annotations

import math

from pygame.math import Vector2


def _safe_normalize(vector: Vector2) -> Vector2:
    return _safe_normalize_xy(vector.x, vector.y)


def _safe_normalize_xy(x: float, y: float) -> Vector2:
    magnitude_sq = x * x + y * y
    if magnitude_sq < 1e-10:
        return Vector2()
    inv = 1.0 / math.sqrt(magnitude_sq)
    return Vector2(x * inv, y * inv)


def _clamp_length(vector: Vector2, max_length: float) -> Vector2:
    if max_length <= 0:
        return Vector2()
    magnitude_sq = vector.length_squared()
    if magnitude_sq <= max_length * max_length:
        return Vector2(vector)
    if magnitude_sq == 0:
        return Vector2()
    return vector.normalize() * max_length


def _heading_from_velocity(vector: Vector2) -> float:
    if vector.length_squared() < 1e-12:
        return 0.0
    return math.atan2(vector.y, vector.x)


def _from_angle(angle: float, length: float = 1.0) -> Vector2:
    return Vector2(math.cos(angle) * length, math.sin(angle) * length)


def _wrap_angle(angle: float) -> float:
    while angle > math.pi:
        angle -= 2.0 * math.pi
    while angle <= -math.pi:
        angle += 2.0 * math.pi
    return angle


def _clamp_value(value: float, min_value: float, max_value: float) -> float:
    return max(min_value, min(max_value, value))


def _closest_point_on_segment(a: Vector2, b: Vector2, point: Vector2) -> Vector2:
    abx = b.x - a.x
    aby = b.y - a.y
    length_sq = abx * abx + aby * aby
    if length_sq < 1e-12:
        return Vector2(a)
    t = ((point.x - a.x) * abx + (point.y - a.y) * aby) / length_sq
    t = _clamp_value(t, 0.0, 1.0)
    return Vector2(a.x + abx * t, a.y + aby * t)
