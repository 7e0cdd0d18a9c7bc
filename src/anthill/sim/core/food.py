from __future__ import annotations

from pygame.math import Vector2


class FoodSource:
    def __init__(self, position: Vector2, radius: float, amount: int = 500):
        self.position = Vector2(position)
        self.radius = float(radius)
        self.amount = int(amount)
        self.original_amount = int(amount)

    def take(self, position: Vector2) -> bool:
        """Remove one unit if ``position`` lies inside the source."""
        if self.amount <= 0:
            return False
        if position.distance_to(self.position) < self.radius:
            self.amount = max(0, self.amount - 1)
            return True
        return False

    def is_depleted(self) -> bool:
        return self.amount <= 0

    @property
    def fraction_remaining(self) -> float:
        if self.original_amount <= 0:
            return 0.0
        return max(0.0, min(1.0, self.amount / self.original_amount))

    def refill(self) -> None:
        self.amount = self.original_amount

    def move_to(self, position: Vector2) -> None:
        self.position = Vector2(position)

    def to_dict(self) -> dict:
        return {
            "x": self.position.x,
            "y": self.position.y,
            "radius": self.radius,
            "amount": self.amount,
            "original_amount": self.original_amount,
            "fraction_remaining": self.fraction_remaining,
        }
