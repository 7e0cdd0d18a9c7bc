from __future__ import annotations

from typing import List, Sequence

from ..core.agent import Ant, AntState
from ..core.food import FoodSource
from ..core.nest import Nest
from ..core.pheromones import Channel, PheromoneField
from ..types.metrics import TickMetrics


def create_metrics(
    tick: int,
    ants: Sequence[Ant],
    foods: Sequence[FoodSource],
    nest: Nest,
    field: PheromoneField,
    counters: dict[str, int],
    delivery_distances: List[float],
    duration_ms: float,
) -> TickMetrics:
    exploring = 0
    returning = 0
    for ant in ants:
        if ant.state == AntState.EXPLORING:
            exploring += 1
        elif ant.state == AntState.RETURNING:
            returning += 1
    avg_distance = sum(delivery_distances) / len(delivery_distances) if delivery_distances else 0.0
    return TickMetrics(
        tick=tick,
        population=exploring + returning,
        exploring=exploring,
        returning=returning,
        spawned=counters.get("spawned", 0),
        deaths=counters.get("deaths", 0),
        pickups=counters.get("pickups", 0),
        deliveries=counters.get("deliveries", 0),
        wasted_deliveries=counters.get("wasted", 0),
        food_stored=nest.food_stored,
        nest_capacity=nest.max_capacity,
        nest_efficiency=nest.efficiency,
        food_remaining=sum(food.amount for food in foods),
        food_sources=len(foods),
        avg_delivery_distance=avg_distance,
        home_total=field.total(Channel.HOME),
        food_total=field.total(Channel.FOOD),
        tick_duration_ms=duration_ms,
    )
