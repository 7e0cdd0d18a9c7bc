from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    exploring: int
    returning: int
    spawned: int
    deaths: int
    pickups: int
    deliveries: int
    wasted_deliveries: int
    food_stored: int
    nest_capacity: int
    nest_efficiency: float
    food_remaining: int
    food_sources: int
    avg_delivery_distance: float
    home_total: float
    food_total: float
    tick_duration_ms: float = 0.0
