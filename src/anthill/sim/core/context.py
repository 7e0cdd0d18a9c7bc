from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .config import SimulationConfig
from .food import FoodSource
from .nest import Nest
from .obstacle import Obstacle
from .pheromones import PheromoneField
from .rng import DeterministicRng


@dataclass(slots=True)
class ForagingContext:
    """Shared state handed to every ant update within one tick.

    The world owns these objects; ants only read them or mutate them through
    their own methods (deposit, take, store).
    """

    config: SimulationConfig
    field: PheromoneField
    obstacles: List[Obstacle]
    foods: List[FoodSource]
    nest: Nest
    rng: DeterministicRng
