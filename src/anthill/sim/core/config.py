from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict

import yaml


def _require_positive(name: str, value: float) -> None:
    if not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number")
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")


def _require_non_negative(name: str, value: float) -> None:
    if not isinstance(value, (int, float)):
        raise TypeError(f"{name} must be a number")
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")


def _require_ordered(name: str, low: float, high: float) -> None:
    if low > high:
        raise ValueError(f"{name} range is inverted: {low} > {high}")


@dataclass
class PheromoneConfig:
    max_intensity: float = 1000.0
    max_success: float = 100.0
    spread_cells: int = 1
    # Neighbour falloff uses (1 - d / spread_falloff_radius). The nominal spread
    # radius is one cell, but a falloff radius of exactly 1 gives the axis
    # neighbours nothing, so the default is 1.5 rather than 1.
    spread_falloff_radius: float = 1.5
    spread_factor: float = 0.3
    success_deposit_factor: float = 0.1
    success_decay_factor: float = 0.3
    snap_threshold: float = 0.01
    gradient_offset_factor: float = 0.8
    gradient_diagonal_factor: float = 0.7
    gradient_threshold: float = 0.1
    display_threshold: float = 0.5
    home_deposit: float = 6.0
    food_deposit: float = 12.0

    def __post_init__(self) -> None:
        _require_positive("pheromone.max_intensity", self.max_intensity)
        _require_positive("pheromone.max_success", self.max_success)
        _require_non_negative("pheromone.spread_cells", self.spread_cells)
        _require_positive("pheromone.spread_falloff_radius", self.spread_falloff_radius)
        _require_non_negative("pheromone.spread_factor", self.spread_factor)
        _require_non_negative("pheromone.snap_threshold", self.snap_threshold)


@dataclass
class SensorConfig:
    detection_range: float = 80.0
    half_angle: float = math.pi / 3
    angle_step: float = math.pi / 12
    noise_level: float = 0.3
    detection_threshold: float = 0.5
    success_weight: float = 0.5

    def __post_init__(self) -> None:
        _require_positive("sensor.detection_range", self.detection_range)
        _require_non_negative("sensor.half_angle", self.half_angle)
        _require_positive("sensor.angle_step", self.angle_step)
        _require_non_negative("sensor.noise_level", self.noise_level)
        _require_non_negative("sensor.detection_threshold", self.detection_threshold)


@dataclass
class AntConfig:
    max_speed: float = 3.0
    max_turn_rate: float = 0.3
    explore_speed: float = 3.0
    return_speed: float = 2.5
    acceleration: float = 0.1
    initial_speed: float = 2.0
    food_visual_range: float = 200.0
    food_urgency_radius: float = 30.0
    food_urgency_scale: float = 1.2
    directness_cap: float = 0.8
    nest_near_radius: float = 100.0
    home_trail_weight: float = 0.5
    home_attraction_cap: float = 2.0
    food_attraction_cap: float = 3.0
    explore_jitter: float = 0.3
    wander_momentum_weight: float = 0.4
    gradient_follow_weight: float = 0.2
    momentum_decay: float = 0.7
    momentum_weight_exploring: float = 0.5
    momentum_weight_returning: float = 0.4
    returning_momentum_damping: float = 0.3
    obstacle_avoid_radius: float = 12.0
    obstacle_avoid_gain: float = 2.0
    obstacle_avoid_min_force: float = 0.5
    obstacle_avoid_weight: float = 0.8
    obstacle_force_mode: str = "average"
    collision_distance: float = 3.0
    bounce_factor: float = 1.0
    boundary_margin: float = 10.0
    boundary_damping: float = 0.8
    boundary_jitter: float = 0.5
    path_min_spacing: float = 15.0
    path_max_points: int = 100
    nest_slack: float = 5.0
    reinforce_min_points: int = 3
    discovery_reinforcement: float = 3.0
    delivery_reinforcement_gain: float = 6.0
    trip_bonus_ticks: float = 600.0
    delivery_time_ticks: float = 1800.0
    delivery_path_factor: float = 0.002
    efficiency_floor: float = 0.5

    def __post_init__(self) -> None:
        _require_positive("ant.max_speed", self.max_speed)
        _require_positive("ant.max_turn_rate", self.max_turn_rate)
        _require_non_negative("ant.acceleration", self.acceleration)
        _require_positive("ant.path_min_spacing", self.path_min_spacing)
        _require_positive("ant.path_max_points", self.path_max_points)
        _require_positive("ant.trip_bonus_ticks", self.trip_bonus_ticks)
        _require_positive("ant.delivery_time_ticks", self.delivery_time_ticks)
        if self.obstacle_force_mode not in {"average", "sum"}:
            raise ValueError(f"ant.obstacle_force_mode must be 'average' or 'sum', got {self.obstacle_force_mode!r}")
        if not (0.0 <= self.boundary_damping <= 1.0):
            raise ValueError("ant.boundary_damping must be within [0,1]")


@dataclass
class LayoutConfig:
    obstacle_count: int = 30
    obstacle_radius_min: float = 30.0
    obstacle_radius_max: float = 60.0
    obstacle_vertices: int = 18
    obstacle_irregularity: float = 0.2
    obstacle_spacing: float = 20.0
    food_count_min: int = 4
    food_count_max: int = 6
    food_amount: int = 500
    food_radius_min: float = 20.0
    food_radius_max: float = 30.0
    food_obstacle_buffer: float = 30.0
    food_spacing: float = 20.0
    food_nest_buffer: float = 400.0
    nest_radius: float = 40.0
    nest_margin: float = 100.0
    nest_obstacle_buffer: float = 80.0
    nest_food_buffer: float = 120.0
    placement_attempts: int = 100
    spawn_distance_min: float = 15.0
    spawn_distance_max: float = 25.0
    spawn_clearance: float = 5.0
    spawn_attempts: int = 50
    respawn_food: bool = True
    respawn_margin: float = 80.0
    respawn_food_spacing: float = 40.0

    def __post_init__(self) -> None:
        _require_non_negative("layout.obstacle_count", self.obstacle_count)
        _require_positive("layout.obstacle_radius_min", self.obstacle_radius_min)
        _require_ordered("layout.obstacle_radius", self.obstacle_radius_min, self.obstacle_radius_max)
        if self.obstacle_vertices < 3:
            raise ValueError("layout.obstacle_vertices must be >= 3")
        if not (0.0 <= self.obstacle_irregularity < 1.0):
            raise ValueError("layout.obstacle_irregularity must be within [0,1)")
        _require_non_negative("layout.food_count_min", self.food_count_min)
        _require_ordered("layout.food_count", self.food_count_min, self.food_count_max)
        _require_positive("layout.food_amount", self.food_amount)
        _require_positive("layout.food_radius_min", self.food_radius_min)
        _require_ordered("layout.food_radius", self.food_radius_min, self.food_radius_max)
        _require_positive("layout.nest_radius", self.nest_radius)
        _require_ordered("layout.spawn_distance", self.spawn_distance_min, self.spawn_distance_max)


@dataclass
class LifecycleConfig:
    mortal: bool = False
    lifespan_ticks: float = 18000.0
    lifespan_jitter_ticks: float = 7200.0
    max_energy: float = 100.0
    energy_decay: float = 0.02
    low_energy_speed_floor: float = 0.3

    def __post_init__(self) -> None:
        _require_positive("lifecycle.lifespan_ticks", self.lifespan_ticks)
        _require_non_negative("lifecycle.lifespan_jitter_ticks", self.lifespan_jitter_ticks)
        _require_positive("lifecycle.max_energy", self.max_energy)
        _require_non_negative("lifecycle.energy_decay", self.energy_decay)


@dataclass
class PopulationConfig:
    maintain: bool = True
    emergency_fraction: float = 0.3
    emergency_batch_min: int = 10
    emergency_batch_max: int = 19
    emergency_interval_min: int = 30
    emergency_interval_max: int = 89
    batch_min: int = 3
    batch_max: int = 8
    interval_min: int = 60
    interval_max: int = 179

    def __post_init__(self) -> None:
        _require_ordered("population.emergency_batch", self.emergency_batch_min, self.emergency_batch_max)
        _require_ordered("population.emergency_interval", self.emergency_interval_min, self.emergency_interval_max)
        _require_ordered("population.batch", self.batch_min, self.batch_max)
        _require_ordered("population.interval", self.interval_min, self.interval_max)


@dataclass
class EscapeConfig:
    enabled: bool = True
    check_interval: int = 30
    history_length: int = 10
    progress_threshold: float = 30.0
    trapped_checks: int = 90
    duration_ticks: int = 300
    max_attempts: int = 5
    goal_bias_returning: float = 0.1
    goal_bias_exploring: float = 0.2

    def __post_init__(self) -> None:
        _require_positive("escape.check_interval", self.check_interval)
        _require_positive("escape.history_length", self.history_length)
        _require_non_negative("escape.duration_ticks", self.duration_ticks)


@dataclass
class SimulationConfig:
    width: float = 1200.0
    height: float = 800.0
    cell_size: float = 6.0
    evaporation_rate: float = 0.01
    ant_count: int = 500
    tick_rate: float = 60.0
    seed: int = 42
    config_version: str = "v1"
    pheromone: PheromoneConfig = field(default_factory=PheromoneConfig)
    sensor: SensorConfig = field(default_factory=SensorConfig)
    ant: AntConfig = field(default_factory=AntConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    population: PopulationConfig = field(default_factory=PopulationConfig)
    escape: EscapeConfig = field(default_factory=EscapeConfig)

    def __post_init__(self) -> None:
        _require_positive("width", self.width)
        _require_positive("height", self.height)
        _require_positive("cell_size", self.cell_size)
        _require_positive("tick_rate", self.tick_rate)
        _require_non_negative("ant_count", self.ant_count)
        if not (0.0 <= self.evaporation_rate < 1.0):
            raise ValueError("evaporation_rate must be within [0,1)")

    @property
    def time_step(self) -> float:
        return 1.0 / self.tick_rate

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)


_SECTIONS = {
    "pheromone": PheromoneConfig,
    "sensor": SensorConfig,
    "ant": AntConfig,
    "layout": LayoutConfig,
    "lifecycle": LifecycleConfig,
    "population": PopulationConfig,
    "escape": EscapeConfig,
}


def _section(cls: type, raw: Any) -> Any:
    if not isinstance(raw, dict):
        return cls()
    known = {f.name for f in fields(cls)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} keys: {sorted(unknown)}")
    return cls(**raw)


def load_config(raw: Dict[str, Any]) -> SimulationConfig:
    sections = {name: _section(cls, raw.get(name)) for name, cls in _SECTIONS.items()}
    known = {f.name for f in fields(SimulationConfig)}
    sim_values = {k: v for k, v in raw.items() if k not in _SECTIONS}
    unknown = set(sim_values) - known
    if unknown:
        raise ValueError(f"Unknown SimulationConfig keys: {sorted(unknown)}")
    return SimulationConfig(**sections, **sim_values)
