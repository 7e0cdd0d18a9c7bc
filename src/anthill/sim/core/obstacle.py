from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Sequence

from pygame.math import Vector2

from .rng import DeterministicRng
from ..utils.math2d import _closest_point_on_segment

_DEGENERATE_DISTANCE = 0.1


@dataclass(frozen=True, slots=True)
class Repulsion:
    direction: Vector2
    distance: float


def make_blob(
    center: Vector2,
    radius: float,
    rng: DeterministicRng,
    irregularity: float = 0.2,
    vertex_count: int = 18,
) -> List[Vector2]:
    vertex_count = max(3, int(vertex_count))
    points: List[Vector2] = []
    for i in range(vertex_count):
        theta = (i / vertex_count) * math.pi * 2
        variance = 1.0 + (rng.next_float() * 2.0 - 1.0) * irregularity
        r = radius * variance
        points.append(Vector2(center.x + math.cos(theta) * r, center.y + math.sin(theta) * r))
    return points


class Obstacle:
    """Closed star-shaped polygon that pushes ants away from its boundary."""

    def __init__(self, center: Vector2, base_radius: float, points: Sequence[Vector2]):
        if len(points) < 3:
            raise ValueError("an obstacle needs at least 3 vertices")
        self._center = Vector2(center)
        self._base_radius = float(base_radius)
        self._points = [Vector2(p) for p in points]

    @classmethod
    def generate(
        cls,
        center: Vector2,
        radius: float,
        rng: DeterministicRng,
        vertex_count: int = 18,
        irregularity: float = 0.2,
    ) -> "Obstacle":
        points = make_blob(center, radius, rng, irregularity=irregularity, vertex_count=vertex_count)
        return cls(center, radius, points)

    @property
    def center(self) -> Vector2:
        return Vector2(self._center)

    @property
    def base_radius(self) -> float:
        return self._base_radius

    @property
    def points(self) -> List[Vector2]:
        return [Vector2(p) for p in self._points]

    @property
    def centroid(self) -> Vector2:
        count = len(self._points)
        sx = sum(p.x for p in self._points)
        sy = sum(p.y for p in self._points)
        return Vector2(sx / count, sy / count)

    def regenerate(
        self,
        center: Vector2,
        radius: float,
        rng: DeterministicRng,
        vertex_count: int | None = None,
        irregularity: float = 0.2,
    ) -> None:
        count = len(self._points) if vertex_count is None else vertex_count
        self._center = Vector2(center)
        self._base_radius = float(radius)
        self._points = make_blob(self._center, radius, rng, irregularity=irregularity, vertex_count=count)

    def translate(self, delta: Vector2) -> None:
        self._center += delta
        self._points = [p + delta for p in self._points]

    def repulse(self, position: Vector2, rng: DeterministicRng | None = None) -> Repulsion:
        min_dist = math.inf
        closest: Vector2 | None = None
        count = len(self._points)
        for i in range(count):
            a = self._points[i]
            b = self._points[(i + 1) % count]
            candidate = _closest_point_on_segment(a, b, position)
            dist = position.distance_to(candidate)
            if dist < min_dist:
                min_dist = dist
                closest = candidate

        away = position - closest
        if away.length() < _DEGENERATE_DISTANCE:
            center_away = position - self.centroid
            if center_away.length() > _DEGENERATE_DISTANCE:
                return Repulsion(center_away.normalize(), min_dist)
            if rng is not None:
                return Repulsion(rng.next_unit_circle(), min_dist)
            return Repulsion(Vector2(1.0, 0.0), min_dist)
        return Repulsion(away.normalize(), min_dist)

    def contains(self, position: Vector2) -> bool:
        inside = False
        count = len(self._points)
        px = position.x
        py = position.y
        j = count - 1
        for i in range(count):
            a = self._points[i]
            b = self._points[j]
            if (a.y > py) != (b.y > py):
                cross_x = (b.x - a.x) * (py - a.y) / (b.y - a.y) + a.x
                if px < cross_x:
                    inside = not inside
            j = i
        return inside

    def to_dict(self) -> dict:
        return {
            "center": [self._center.x, self._center.y],
            "base_radius": self._base_radius,
            "points": [[p.x, p.y] for p in self._points],
        }
