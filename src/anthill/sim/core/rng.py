from __future__ import annotations

import math
import random
from typing import Optional, Sequence, TypeVar

from pygame.math import Vector2

T = TypeVar("T")


class DeterministicRng:
    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    @property
    def seed(self) -> int:
        return self._seed

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_float(self) -> float:
        return self._random.random()

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_int(self, max_value: int) -> int:
        return self._random.randrange(max_value)

    def next_signed(self, scale: float = 1.0) -> float:
        """Uniform sample in ``[-scale / 2, scale / 2]``."""
        return (self._random.random() - 0.5) * scale

    def next_angle(self) -> float:
        return self._random.uniform(0, 2 * math.pi)

    def next_unit_circle(self) -> Vector2:
        vector = Vector2()
        vector.from_polar((1, math.degrees(self.next_angle())))
        return vector

    def sample_choice(self, items: Sequence[T]) -> Optional[T]:
        if not items:
            return None
        return self._random.choice(items)
