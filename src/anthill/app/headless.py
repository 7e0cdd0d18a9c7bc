from __future__ import annotations

import argparse
import contextlib
import csv
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

import numpy as np

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)


BASIC_COLUMNS = (
    "tick",
    "population",
    "exploring",
    "returning",
    "deliveries",
    "wasted_deliveries",
    "food_stored",
    "nest_efficiency",
    "tick_ms",
)

DETAILED_COLUMNS = (
    "tick",
    "population",
    "exploring",
    "returning",
    "spawned",
    "deaths",
    "pickups",
    "deliveries",
    "wasted_deliveries",
    "food_stored",
    "nest_capacity",
    "nest_fill",
    "nest_efficiency",
    "food_remaining",
    "food_sources",
    "avg_delivery_distance",
    "home_total",
    "food_total",
    "tick_ms",
    "returning_ratio",
    "tick_ms_per_ant",
    "avg_speed",
    "avg_path_points",
    "escaping",
    "avg_energy",
)

_COLUMNS_BY_FORMAT = {"basic": BASIC_COLUMNS, "detailed": DETAILED_COLUMNS}
_PERCENTILES = (50, 90, 95, 99)
_FRAME_BUDGETS_MS = (16.0, 33.0)


def _colony_averages(world: World) -> dict[str, float]:
    living = [ant for ant in world.ants if ant.alive]
    if not living:
        return {"avg_speed": 0.0, "avg_path_points": 0.0, "avg_energy": 0.0, "escaping": 0}
    speeds = np.fromiter((ant.velocity.length() for ant in living), dtype=float, count=len(living))
    path_points = np.fromiter((len(ant.path) for ant in living), dtype=float, count=len(living))
    energies = np.fromiter((ant.energy for ant in living), dtype=float, count=len(living))
    return {
        "avg_speed": float(speeds.mean()),
        "avg_path_points": float(path_points.mean()),
        "avg_energy": float(energies.mean()),
        "escaping": sum(1 for ant in living if ant.trap.escaping),
    }


def _telemetry_row(world: World, metrics: TickMetrics, tick_ms: float, detailed: bool) -> dict[str, object]:
    row: dict[str, object] = {
        "tick": metrics.tick,
        "population": metrics.population,
        "exploring": metrics.exploring,
        "returning": metrics.returning,
        "deliveries": metrics.deliveries,
        "wasted_deliveries": metrics.wasted_deliveries,
        "food_stored": metrics.food_stored,
        "nest_efficiency": f"{metrics.nest_efficiency:.4f}",
        "tick_ms": f"{tick_ms:.3f}",
    }
    if not detailed:
        return row

    population = metrics.population
    fill = metrics.food_stored / metrics.nest_capacity if metrics.nest_capacity > 0 else 0.0
    averages = _colony_averages(world)
    row.update(
        spawned=metrics.spawned,
        deaths=metrics.deaths,
        pickups=metrics.pickups,
        nest_capacity=metrics.nest_capacity,
        nest_fill=f"{fill:.4f}",
        food_remaining=metrics.food_remaining,
        food_sources=metrics.food_sources,
        avg_delivery_distance=f"{metrics.avg_delivery_distance:.4f}",
        home_total=f"{metrics.home_total:.4f}",
        food_total=f"{metrics.food_total:.4f}",
        returning_ratio=f"{(metrics.returning / population if population else 0.0):.4f}",
        tick_ms_per_ant=f"{(tick_ms / population if population else 0.0):.4f}",
        avg_speed=f"{averages['avg_speed']:.4f}",
        avg_path_points=f"{averages['avg_path_points']:.4f}",
        escaping=averages["escaping"],
        avg_energy=f"{averages['avg_energy']:.4f}",
    )
    return row


def _summary_stats(values: Sequence[float]) -> dict[str, float]:
    data = np.asarray(values, dtype=float)
    if data.size == 0:
        stats = {"min": 0.0, "max": 0.0, "avg": 0.0}
        stats.update({f"p{p}": 0.0 for p in _PERCENTILES})
        return stats
    stats = {"min": float(data.min()), "max": float(data.max()), "avg": float(data.mean())}
    for p, value in zip(_PERCENTILES, np.percentile(data, _PERCENTILES)):
        stats[f"p{p}"] = float(value)
    return stats


def _correlation(xs: Sequence[float], ys: Sequence[float]) -> float:
    if len(xs) != len(ys) or len(xs) < 2:
        return 0.0
    a = np.asarray(xs, dtype=float)
    b = np.asarray(ys, dtype=float)
    if a.std() == 0.0 or b.std() == 0.0:
        return 0.0
    return float(np.corrcoef(a, b)[0, 1])


def delivery_trend(world: World, steps: int, fraction: float = 0.1) -> dict[str, float]:
    """Mean delivery leg distance in the first and last ``fraction`` of the run."""
    span = max(1, int(steps * fraction))
    early = [r.leg_distance for r in world.delivery_log if r.tick < span]
    late = [r.leg_distance for r in world.delivery_log if r.tick >= steps - span]
    return {
        "window_ticks": span,
        "early_count": len(early),
        "late_count": len(late),
        "early_mean": float(np.mean(early)) if early else 0.0,
        "late_mean": float(np.mean(late)) if late else 0.0,
    }


@dataclass(slots=True)
class RunRecorder:
    """Per-tick series kept for the JSON summary."""

    tick_ms: list[float] = field(default_factory=list)
    population: list[float] = field(default_factory=list)
    returning: list[float] = field(default_factory=list)
    efficiency: list[float] = field(default_factory=list)
    nest_full_tick: int = -1

    def observe(self, tick: int, metrics: TickMetrics, tick_ms: float, nest_full: bool) -> None:
        self.tick_ms.append(tick_ms)
        self.population.append(float(metrics.population))
        self.returning.append(float(metrics.returning))
        self.efficiency.append(metrics.nest_efficiency)
        if nest_full and self.nest_full_tick < 0:
            self.nest_full_tick = tick

    def _peak(self, series: list[float]) -> dict[str, float]:
        if not series:
            return {"value": -1.0, "tick": -1}
        at = int(np.argmax(series))
        return {"value": float(series[at]), "tick": at}

    def summarize(self, world: World, steps: int, seed: int, log_format: str, deterministic: bool, window: int) -> dict:
        tail = slice(max(0, len(self.tick_ms) - window), None)
        log = world.delivery_log
        timings = np.asarray(self.tick_ms, dtype=float)
        return {
            "steps": steps,
            "seed": seed,
            "log_format": log_format,
            "deterministic_log": deterministic,
            "tick_ms": _summary_stats(self.tick_ms),
            "population": _summary_stats(self.population),
            "returning": _summary_stats(self.returning),
            "nest_efficiency": _summary_stats(self.efficiency),
            "deliveries": {
                "count": len(log),
                "leg_distance": _summary_stats([r.leg_distance for r in log]),
                "trip_ticks": _summary_stats([float(r.trip_ticks) for r in log]),
                "efficiency": _summary_stats([r.efficiency for r in log]),
                "trend": delivery_trend(world, steps),
            },
            "nest": {
                "food_stored": world.nest.food_stored,
                "max_capacity": world.nest.max_capacity,
                "full_at_tick": self.nest_full_tick,
            },
            "correlations": {
                "tick_ms_vs_population": _correlation(self.tick_ms, self.population),
                "tick_ms_vs_returning": _correlation(self.tick_ms, self.returning),
            },
            "over_threshold": {
                f"tick_ms_gt_{int(budget)}": int(np.count_nonzero(timings > budget)) for budget in _FRAME_BUDGETS_MS
            },
            "peaks": {
                "tick_ms": self._peak(self.tick_ms),
                "returning": self._peak(self.returning),
            },
            "tail_window": {
                "window": window,
                "tick_ms": _summary_stats(self.tick_ms[tail]),
                "returning": _summary_stats(self.returning[tail]),
                "nest_efficiency": _summary_stats(self.efficiency[tail]),
            },
        }


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    summary_window: int = 5000,
    config_path: Optional[Path] = None,
) -> World:
    fmt = log_format.lower().strip()
    if fmt not in _COLUMNS_BY_FORMAT:
        raise ValueError(f"Unknown log format: {log_format}")
    columns = _COLUMNS_BY_FORMAT[fmt]

    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed
    world = World(config)
    recorder = RunRecorder() if summary_path else None
    logger.info("Running %d ticks with seed %d and %d ants", steps, config.seed, len(world.ants))

    with open(log_path, "w", newline="") if log_path else contextlib.nullcontext() as sink:
        writer = csv.DictWriter(sink, fieldnames=columns, extrasaction="ignore") if log_path else None
        if writer:
            writer.writeheader()
        for tick in range(steps):
            metrics = world.step(tick)
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms
            if recorder:
                recorder.observe(tick, metrics, tick_ms, world.nest.is_full)
            if writer:
                writer.writerow(_telemetry_row(world, metrics, tick_ms, fmt == "detailed"))

    logger.info(
        "Finished: %d deliveries, nest %d/%d", len(world.delivery_log), world.nest.food_stored, world.nest.max_capacity
    )
    if recorder:
        window = max(1, int(summary_window))
        summary = recorder.summarize(world, steps, config.seed, fmt, deterministic_log, window)
        Path(summary_path).write_text(json.dumps(summary, indent=2))
    return world


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run the ant colony without a display and write telemetry")
    parser.add_argument("--steps", type=int, default=3000, help="Number of ticks to simulate.")
    parser.add_argument("--seed", type=int, default=None, help="Override the configured seed.")
    parser.add_argument("--config", type=Path, default=None, help="YAML file overriding the default config.")
    parser.add_argument("--log", type=Path, default=None, help="Per-tick CSV telemetry output.")
    parser.add_argument("--log-format", choices=sorted(_COLUMNS_BY_FORMAT), default="detailed")
    parser.add_argument("--summary", type=Path, default=None, help="JSON run summary output.")
    parser.add_argument("--summary-window", type=int, default=5000, help="Ticks in the summary tail window.")
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write 0.000 for tick_ms so runs with the same seed produce identical files.",
    )
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        summary_window=args.summary_window,
        config_path=args.config,
    )


if __name__ == "__main__":
    main()
