from __future__ import annotations

import math
from enum import Enum
from typing import Dict, Iterable, List, Tuple

import numpy as np
from pygame.math import Vector2

from .config import PheromoneConfig


class Channel(str, Enum):
    HOME = "home"
    FOOD = "food"


class PheromoneField:
    """Two decaying trail grids plus a slower ``success`` grid over the arena.

    Cells are addressed ``[gx, gy]``; every spatial query clamps its cell so
    positions outside the arena read and write the border cells.
    """

    def __init__(self, width: float, height: float, cell_size: float, config: PheromoneConfig | None = None):
        self._config = config if config is not None else PheromoneConfig()
        self._cell_size = cell_size
        self._grid_width = max(1, int(math.ceil(width / cell_size)))
        self._grid_height = max(1, int(math.ceil(height / cell_size)))
        shape = (self._grid_width, self._grid_height)
        self._trails: Dict[Channel, np.ndarray] = {
            Channel.HOME: np.zeros(shape, dtype=np.float64),
            Channel.FOOD: np.zeros(shape, dtype=np.float64),
        }
        self._success = np.zeros(shape, dtype=np.float64)
        self._spread_offsets = self._build_spread_offsets()

    @property
    def cell_size(self) -> float:
        return self._cell_size

    @property
    def grid_width(self) -> int:
        return self._grid_width

    @property
    def grid_height(self) -> int:
        return self._grid_height

    @property
    def home(self) -> np.ndarray:
        return self._trails[Channel.HOME]

    @property
    def food(self) -> np.ndarray:
        return self._trails[Channel.FOOD]

    @property
    def path_success(self) -> np.ndarray:
        return self._success

    def grid(self, channel: Channel) -> np.ndarray:
        return self._trails[Channel(channel)]

    def index(self, position: Vector2) -> Tuple[int, int]:
        gx = int(math.floor(position.x / self._cell_size))
        gy = int(math.floor(position.y / self._cell_size))
        gx = max(0, min(self._grid_width - 1, gx))
        gy = max(0, min(self._grid_height - 1, gy))
        return (gx, gy)

    def deposit(self, position: Vector2, channel: Channel, amount: float, success_bonus: float = 1.0) -> None:
        config = self._config
        grid = self._trails[Channel(channel)]
        gx, gy = self.index(position)
        weighted = amount * success_bonus
        grid[gx, gy] = min(grid[gx, gy] + weighted, config.max_intensity)
        self._success[gx, gy] = min(
            self._success[gx, gy] + success_bonus * config.success_deposit_factor, config.max_success
        )

        for dx, dy, weight in self._spread_offsets:
            nx = gx + dx
            ny = gy + dy
            if 0 <= nx < self._grid_width and 0 <= ny < self._grid_height:
                grid[nx, ny] = min(grid[nx, ny] + weighted * weight, config.max_intensity)

    def sample(self, position: Vector2, channel: Channel) -> float:
        gx, gy = self.index(position)
        return float(self._trails[Channel(channel)][gx, gy])

    def success(self, position: Vector2) -> float:
        gx, gy = self.index(position)
        return float(self._success[gx, gy])

    def gradient(self, position: Vector2, channel: Channel) -> Vector2:
        delta = self._cell_size * self._config.gradient_offset_factor
        diag = delta * self._config.gradient_diagonal_factor
        x = position.x
        y = position.y

        def at(px: float, py: float) -> float:
            return self.sample(Vector2(px, py), channel)

        right = at(x + delta, y)
        left = at(x - delta, y)
        down = at(x, y + delta)
        up = at(x, y - delta)
        up_right = at(x + diag, y - diag)
        up_left = at(x - diag, y - diag)
        down_right = at(x + diag, y + diag)
        down_left = at(x - diag, y + diag)

        dx = (right - left) * 0.5 + (up_right - up_left + down_right - down_left) * 0.25
        dy = (down - up) * 0.5 + (down_right - up_right + down_left - up_left) * 0.25
        magnitude = math.hypot(dx, dy)
        if magnitude <= self._config.gradient_threshold:
            return Vector2()
        return Vector2(dx / magnitude, dy / magnitude)

    def evaporate(self, rate: float) -> None:
        snap = self._config.snap_threshold
        for grid in self._trails.values():
            grid *= 1.0 - rate
            grid[grid < snap] = 0.0
        self._success *= 1.0 - rate * self._config.success_decay_factor
        self._success[self._success < snap] = 0.0

    def reinforce_path(self, points: Iterable[Vector2], strength: float) -> None:
        max_success = self._config.max_success
        for point in points:
            if point is None:
                continue
            gx, gy = self.index(point)
            self._success[gx, gy] = min(self._success[gx, gy] + strength, max_success)

    def clear(self) -> None:
        for grid in self._trails.values():
            grid.fill(0.0)
        self._success.fill(0.0)

    def total(self, channel: Channel) -> float:
        return float(self._trails[Channel(channel)].sum())

    def export_cells(self, threshold: float | None = None) -> Dict[str, object]:
        if threshold is None:
            threshold = self._config.display_threshold
        home = self._trails[Channel.HOME]
        food = self._trails[Channel.FOOD]
        visible = np.argwhere((home > threshold) | (food > threshold))
        cells: List[Dict[str, float]] = [
            {
                "x": int(gx),
                "y": int(gy),
                "home": float(home[gx, gy]),
                "food": float(food[gx, gy]),
                "success": float(self._success[gx, gy]),
            }
            for gx, gy in visible
        ]
        return {
            "cells": cells,
            "cell_size": self._cell_size,
            "grid_width": self._grid_width,
            "grid_height": self._grid_height,
        }

    def _build_spread_offsets(self) -> List[Tuple[int, int, float]]:
        cells = int(self._config.spread_cells)
        radius = self._config.spread_falloff_radius
        offsets: List[Tuple[int, int, float]] = []
        for dx in range(-cells, cells + 1):
            for dy in range(-cells, cells + 1):
                distance = math.hypot(dx, dy)
                if distance <= 0 or distance > radius:
                    continue
                offsets.append((dx, dy, (1.0 - distance / radius) * self._config.spread_factor))
        return offsets
