from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List

from pygame.math import Vector2


class AntState(str, Enum):
    EXPLORING = "Exploring"
    RETURNING = "Returning"
    DEAD = "Dead"


@dataclass(slots=True)
class TrapTracker:
    check_counter: int = 0
    progress_history: List[float] = field(default_factory=list)
    initial_goal_distance: float = 0.0
    trapped_checks: int = 0
    escape_ticks_left: int = 0
    escape_attempts: int = 0

    @property
    def escaping(self) -> bool:
        return self.escape_ticks_left > 0

    def clear_progress(self) -> None:
        self.progress_history.clear()
        self.initial_goal_distance = 0.0
        self.trapped_checks = 0


@dataclass(slots=True)
class Ant:
    id: int
    position: Vector2
    velocity: Vector2
    state: AntState = AntState.EXPLORING
    momentum: Vector2 = field(default_factory=Vector2)
    path: List[Vector2] = field(default_factory=list)
    trip_ticks: int = 0
    leg_distance: float = 0.0
    max_speed: float = 3.0
    heading: float = 0.0
    age: int = 0
    lifespan: float = 18000.0
    energy: float = 100.0
    last_direction: Vector2 = field(default_factory=Vector2)
    trap: TrapTracker = field(default_factory=TrapTracker)

    @property
    def alive(self) -> bool:
        return self.state != AntState.DEAD

    @property
    def carrying(self) -> bool:
        return self.state == AntState.RETURNING

    def start_trip(self, state: AntState) -> None:
        self.state = state
        self.path.clear()
        self.trip_ticks = 0
        self.leg_distance = 0.0
        self.trap.clear_progress()
