from __future__ import annotations

from pygame.math import Vector2

_EFFICIENCY_DECAY = 0.95
_EFFICIENCY_GAIN = 0.05
_EFFICIENCY_MAX = 2.0


class Nest:
    """Delivery target; ``food_stored`` never exceeds ``max_capacity``.

    Once ``is_full`` is set it only clears through :meth:`reset`.
    """

    def __init__(self, position: Vector2, radius: float = 40.0, max_capacity: int = 0):
        self.position = Vector2(position)
        self.radius = float(radius)
        self.food_stored = 0
        self.max_capacity = int(max_capacity)
        self.efficiency = 1.0
        self.is_full = False

    def contains(self, position: Vector2, slack: float = 0.0) -> bool:
        return position.distance_to(self.position) < self.radius + slack

    def record_efficiency(self, value: float) -> float:
        blended = self.efficiency * _EFFICIENCY_DECAY + value * _EFFICIENCY_GAIN
        self.efficiency = max(0.0, min(_EFFICIENCY_MAX, blended))
        return self.efficiency

    def store(self, units: int) -> int:
        if self.is_full or self.food_stored >= self.max_capacity:
            self.is_full = True
            return 0
        units = max(0, int(units))
        total = self.food_stored + units
        if total >= self.max_capacity:
            accepted = self.max_capacity - self.food_stored
            self.food_stored = self.max_capacity
            self.is_full = True
            return accepted
        self.food_stored = total
        return units

    @property
    def fill_fraction(self) -> float:
        if self.max_capacity <= 0:
            return 1.0 if self.is_full else 0.0
        return min(1.0, self.food_stored / self.max_capacity)

    def reset(self, max_capacity: int | None = None) -> None:
        if max_capacity is not None:
            self.max_capacity = int(max_capacity)
        self.food_stored = 0
        self.is_full = False
        self.efficiency = 1.0

    def move_to(self, position: Vector2) -> None:
        self.position = Vector2(position)

    def to_dict(self) -> dict:
        return {
            "x": self.position.x,
            "y": self.position.y,
            "radius": self.radius,
            "food_stored": self.food_stored,
            "max_capacity": self.max_capacity,
            "fill_fraction": self.fill_fraction,
            "efficiency": self.efficiency,
            "is_full": self.is_full,
        }
