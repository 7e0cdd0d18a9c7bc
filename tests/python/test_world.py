from __future__ import annotations

import math

import numpy as np
import pytest
from pygame.math import Vector2
from pytest import approx

from anthill.sim.core.agent import Ant, AntState
from anthill.sim.core.config import LayoutConfig, LifecycleConfig, SimulationConfig
from anthill.sim.core.food import FoodSource
from anthill.sim.core.nest import Nest
from anthill.sim.core.obstacle import Obstacle
from anthill.sim.core.world import World
from anthill.sim.systems.layout import Layout


def small_config(**overrides) -> SimulationConfig:
    values = dict(seed=1234, ant_count=40, layout=LayoutConfig(obstacle_count=5))
    values.update(overrides)
    return SimulationConfig(**values)


def square(center: Vector2, half: float) -> Obstacle:
    return Obstacle(
        center,
        half,
        [
            Vector2(center.x - half, center.y - half),
            Vector2(center.x + half, center.y - half),
            Vector2(center.x + half, center.y + half),
            Vector2(center.x - half, center.y + half),
        ],
    )


def arena(foods=None, obstacles=None, ant_count: int = 0, **overrides) -> World:
    config = SimulationConfig(width=600.0, height=400.0, ant_count=ant_count, **overrides)
    layout = Layout(
        obstacles=obstacles or [],
        foods=foods if foods is not None else [FoodSource(Vector2(500.0, 300.0), radius=20.0, amount=50)],
        nest=Nest(Vector2(100.0, 100.0), radius=40.0),
    )
    return World(config, layout)


def run_steps(config: SimulationConfig, steps: int):
    world = World(config)
    trace = []
    for tick in range(steps):
        metrics = world.step(tick)
        trace.append(
            (
                metrics.population,
                metrics.exploring,
                metrics.returning,
                metrics.pickups,
                metrics.deliveries,
                metrics.food_stored,
                round(metrics.home_total, 4),
            )
        )
    positions = [(round(ant.position.x, 6), round(ant.position.y, 6)) for ant in world.ants]
    return trace, positions


def test_deterministic_steps():
    result_a = run_steps(small_config(), 60)
    # recreate config to ensure RNG resets
    result_b = run_steps(small_config(), 60)
    assert result_a == result_b


def test_different_seeds_give_different_layouts():
    world_a = World(small_config(seed=1, ant_count=0))
    world_b = World(small_config(seed=2, ant_count=0))
    centers_a = [(o.center.x, o.center.y) for o in world_a.obstacles]
    centers_b = [(o.center.x, o.center.y) for o in world_b.obstacles]
    assert centers_a != centers_b


def test_generated_nest_capacity_matches_food():
    world = World(small_config(ant_count=0))
    assert world.nest.max_capacity == sum(food.original_amount for food in world.foods)
    assert world.nest.food_stored == 0
    assert 4 <= len(world.foods) <= 6


def test_custom_layout_defaults_capacity_to_food_total():
    world = arena(foods=[FoodSource(Vector2(500.0, 300.0), 20.0, 30), FoodSource(Vector2(450.0, 100.0), 20.0, 12)])
    assert world.nest.max_capacity == 42


def test_bootstrap_ants_ring_the_nest():
    world = arena(ant_count=24)
    assert len(world.ants) == 24
    assert [ant.id for ant in world.ants] == list(range(24))
    for ant in world.ants:
        assert ant.state == AntState.EXPLORING
        assert 15.0 - 1e-9 <= ant.position.distance_to(world.nest.position) <= 25.0 + 1e-9


def test_snapshot_contains_metadata_and_ant_payload():
    world = arena(ant_count=3, tick_rate=30.0, seed=7)
    world.step(0)
    snapshot = world.snapshot(1)

    assert snapshot.tick == 1
    assert snapshot.metadata.width == approx(600.0)
    assert snapshot.metadata.sim_dt == approx(1.0 / 30.0)
    assert snapshot.metadata.seed == 7
    assert snapshot.world.nest["max_capacity"] == 50
    assert len(snapshot.world.foods) == 1
    assert snapshot.metrics.population == 3
    assert "cells" in snapshot.fields.pheromones

    payload = snapshot.ants[0]
    for key in ["id", "x", "y", "vx", "vy", "state", "carrying", "heading", "speed", "energy", "age", "escaping"]:
        assert key in payload
    assert payload["speed"] == approx(Vector2(payload["vx"], payload["vy"]).length())
    assert payload["state"] == "Exploring"


def test_snapshot_before_first_step_has_metrics():
    world = arena(ant_count=5)
    snapshot = world.snapshot(0)
    assert snapshot.metrics.population == 5
    assert snapshot.metrics.tick_duration_ms == 0.0


def test_set_population_grows_and_shrinks():
    world = arena(ant_count=5)
    world.set_population(12)
    assert len(world.ants) == 12
    assert world.target_population == 12
    assert len({ant.id for ant in world.ants}) == 12

    world.set_population(3)
    assert len(world.ants) == 3
    world.set_population(0)
    assert world.ants == []

    with pytest.raises(ValueError):
        world.set_population(-1)


def test_mutations_reject_bad_arguments():
    world = arena(obstacles=[square(Vector2(300.0, 200.0), 20.0)])
    with pytest.raises(IndexError):
        world.translate_obstacle(3, Vector2(1.0, 0.0))
    with pytest.raises(IndexError):
        world.regenerate_obstacle(-1, Vector2(100.0, 100.0), 20.0)
    with pytest.raises(ValueError):
        world.regenerate_obstacle(0, Vector2(100.0, 100.0), 0.0)
    with pytest.raises(IndexError):
        world.move_food(5, Vector2(0.0, 0.0))


def test_move_food_and_nest():
    world = arena()
    world.move_food(0, Vector2(250.0, 250.0))
    world.move_nest(Vector2(80.0, 320.0))
    assert world.foods[0].position == Vector2(250.0, 250.0)
    assert world.nest.position == Vector2(80.0, 320.0)
    assert world.context.nest is world.nest


def test_translate_obstacle_sweeps_nearby_ants():
    obstacle = square(Vector2(300.0, 200.0), 20.0)
    world = arena(obstacles=[obstacle])
    near = Ant(id=0, position=Vector2(330.0, 200.0), velocity=Vector2())
    far = Ant(id=1, position=Vector2(500.0, 50.0), velocity=Vector2())
    world.ants.extend([near, far])

    world.translate_obstacle(0, Vector2(10.0, 0.0))

    assert obstacle.center == Vector2(310.0, 200.0)
    assert near.position.x > 330.0
    assert near.velocity.x > 0.0
    assert near.velocity.length() <= 8.0 + 1e-9
    assert far.position == Vector2(500.0, 50.0)
    assert not obstacle.contains(near.position)


def test_ant_inside_obstacle_is_released():
    obstacle = square(Vector2(300.0, 200.0), 20.0)
    world = arena(obstacles=[obstacle])
    ant = Ant(id=0, position=Vector2(302.0, 200.0), velocity=Vector2(1.0, 0.0))
    world.ants.append(ant)

    world.translate_obstacle(0, Vector2())

    assert ant.position.x == approx(335.0)
    assert ant.position.y == approx(200.0)
    assert ant.velocity.x == approx(3.0)
    assert not obstacle.contains(ant.position)


def test_regenerate_obstacle_releases_covered_ants():
    obstacle = square(Vector2(300.0, 200.0), 20.0)
    world = arena(obstacles=[obstacle])
    ant = Ant(id=0, position=Vector2(150.0, 300.0), velocity=Vector2())
    world.ants.append(ant)

    world.regenerate_obstacle(0, Vector2(150.0, 300.0), 30.0)

    assert obstacle.base_radius == approx(30.0)
    assert not obstacle.contains(ant.position)
    assert obstacle.repulse(ant.position).distance >= 0.8


def test_depleted_food_is_replaced():
    world = arena(foods=[FoodSource(Vector2(400.0, 300.0), radius=20.0, amount=1)])
    ant = Ant(id=0, position=Vector2(400.0, 300.0), velocity=Vector2())
    world.ants.append(ant)

    metrics = world.step(0)

    assert metrics.pickups == 1
    assert ant.state == AntState.RETURNING
    assert len(world.foods) == 1
    replacement = world.foods[0]
    assert replacement.amount == 500
    assert replacement.position.distance_to(world.nest.position) > replacement.radius + world.nest.radius + 120.0
    assert world.context.foods is world.foods


def test_depleted_food_without_respawn_disappears():
    world = arena(
        foods=[FoodSource(Vector2(400.0, 300.0), radius=20.0, amount=1)],
        layout=LayoutConfig(respawn_food=False),
    )
    world.ants.append(Ant(id=0, position=Vector2(400.0, 300.0), velocity=Vector2()))
    metrics = world.step(0)
    assert world.foods == []
    assert metrics.food_sources == 0


def test_delivery_is_logged_and_counted():
    world = arena()
    ant = Ant(id=0, position=Vector2(105.0, 100.0), velocity=Vector2(), state=AntState.RETURNING)
    world.ants.append(ant)

    metrics = world.step(4)

    assert metrics.deliveries == 1
    assert metrics.food_stored == 1
    assert ant.state == AntState.EXPLORING
    assert len(world.delivery_log) == 1
    record = world.delivery_log[0]
    assert record.tick == 4
    assert record.trip_ticks == 1
    # One path point recorded on the way in, one tick of travel.
    assert record.path_points == 1
    assert record.efficiency == approx((0.998 + (1.0 - 1.0 / 1800.0)) / 2.0)


def test_restart_keeps_layout():
    world = World(small_config())
    obstacle_centers = [Vector2(o.center) for o in world.obstacles]
    food_positions = [Vector2(f.position) for f in world.foods]
    world.foods[0].amount -= 10
    world.nest.store(5)
    for tick in range(5):
        world.step(tick)

    world.restart()

    assert [o.center for o in world.obstacles] == obstacle_centers
    assert [f.position for f in world.foods] == food_positions
    assert all(f.amount == f.original_amount for f in world.foods)
    assert world.nest.food_stored == 0
    assert not world.nest.is_full
    assert world.field.home.sum() == 0.0
    assert world.delivery_log == []
    assert len(world.ants) == 40
    assert world.metrics is None


def test_reset_builds_new_layout_and_field():
    world = World(small_config())
    before = [(o.center.x, o.center.y) for o in world.obstacles]
    for tick in range(5):
        world.step(tick)
    old_field = world.field

    world.reset()

    after = [(o.center.x, o.center.y) for o in world.obstacles]
    assert after != before
    assert world.field is not old_field
    assert world.context.field is world.field
    assert world.field.home.sum() == 0.0
    assert len(world.ants) == 40
    assert world.nest.max_capacity == sum(f.original_amount for f in world.foods)


def test_dead_ants_are_removed_and_replaced():
    world = arena(
        ant_count=20,
        lifecycle=LifecycleConfig(mortal=True, lifespan_ticks=5.0, lifespan_jitter_ticks=0.0),
    )
    deaths = 0
    spawned = 0
    for tick in range(8):
        metrics = world.step(tick)
        deaths += metrics.deaths
        spawned += metrics.spawned
        assert metrics.population == len(world.ants)
    assert deaths >= 20
    assert spawned >= 10
    assert all(ant.alive for ant in world.ants)


def test_long_run_stays_in_bounds():
    world = World(small_config(ant_count=60))
    config = world.config
    for tick in range(300):
        metrics = world.step(tick)
        assert metrics.population == metrics.exploring + metrics.returning
        assert world.nest.food_stored <= world.nest.max_capacity

    for ant in world.ants:
        assert math.isfinite(ant.position.x) and math.isfinite(ant.position.y)
        assert 0.0 <= ant.position.x <= config.width
        assert 0.0 <= ant.position.y <= config.height
        # Wall bounces add a little sideways jitter on top of the speed cap.
        assert ant.velocity.length() <= ant.max_speed + 0.5
    for grid in (world.field.home, world.field.food, world.field.path_success):
        assert np.all(np.isfinite(grid))
        assert grid.min() >= 0.0


@pytest.mark.slow
def test_delivery_paths_shorten_as_trails_form():
    config = SimulationConfig(seed=42, width=800.0, height=600.0, ant_count=60)
    layout = Layout(
        obstacles=[],
        foods=[FoodSource(Vector2(600.0, 450.0), radius=25.0, amount=100_000)],
        nest=Nest(Vector2(150.0, 150.0), radius=40.0),
    )
    world = World(config, layout)
    for tick in range(5000):
        world.step(tick)

    # Early ticks can pass without any delivery, so compare the first and
    # last tenth of the deliveries themselves.
    log = world.delivery_log
    assert len(log) >= 50
    tenth = max(5, len(log) // 10)
    early = sum(record.leg_distance for record in log[:tenth]) / tenth
    late = sum(record.leg_distance for record in log[-tenth:]) / tenth
    assert late < early
